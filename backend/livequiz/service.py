from __future__ import annotations

import logging
from typing import List, Optional

from .answers import SubmissionGuard
from .auth import InMemoryAuthProvider, UserAccount
from .db import InMemoryRealtimeStore, Settings
from .events import EventStore
from .game import ClearPolicy, GameController, public_view
from .leaderboard import GameStateFeed, LeaderboardFeed
from .models import AnswerRecord, GameState, Identity, ParticipantScore, Question, QuestionIn
from .questions import QuestionBank

logger = logging.getLogger(__name__)


class LiveQuiz:
    """Entry point used by the HTTP layer; every collaborator is injected."""

    def __init__(self, store, auth, *, clear_policy: ClearPolicy = ClearPolicy.PRESERVE_REVEAL, event_limit: int = 500):
        self.store = store
        self.auth = auth
        self.questions = QuestionBank(store)
        self.game = GameController(store, self.questions, clear_policy)
        self.guard = SubmissionGuard(store, self.questions, self.game)
        self.events = EventStore(store, limit=event_limit)
        self.leaderboard_feed = LeaderboardFeed(store)
        self.game_state_feed = GameStateFeed(store)
        self.leaderboard_feed.add_listener(self._publish_leaderboard)
        self.game_state_feed.add_listener(self._publish_game_state)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LiveQuiz":
        policy = ClearPolicy.RESET_REVEAL if settings.CLEAR_RESETS_REVEAL else ClearPolicy.PRESERVE_REVEAL
        return cls(
            InMemoryRealtimeStore(),
            InMemoryAuthProvider(min_password_length=settings.MIN_PASSWORD_LENGTH),
            clear_policy=policy,
            event_limit=settings.EVENT_LOG_LIMIT,
        )

    async def start(self) -> None:
        await self.events.reset()
        await self.leaderboard_feed.start()
        try:
            await self.game_state_feed.start()
        except Exception:
            await self.leaderboard_feed.stop()
            raise

    async def stop(self) -> None:
        await self.game_state_feed.stop()
        await self.leaderboard_feed.stop()

    # reactive values

    @property
    def leaderboard(self) -> List[ParticipantScore]:
        return list(self.leaderboard_feed.current or [])

    @property
    def game_state(self) -> GameState:
        return self.game_state_feed.current or GameState()

    async def public_state(self, token: Optional[str] = None) -> dict:
        state = await self.game.get_state()
        view = public_view(state, await self.questions.all())
        identity = self.auth.current_identity(token)
        if identity is not None:
            view["answered"] = await self.guard.has_answered(identity, state.active_question_id)
        return view

    # admin game control

    async def activate_question(self, question_id: str) -> GameState:
        return await self.game.activate(question_id)

    async def clear_active_question(self) -> GameState:
        return await self.game.clear()

    async def toggle_reveal(self) -> GameState:
        return await self.game.toggle_reveal()

    # participants

    async def submit_answer(self, token: Optional[str], option_key: int) -> AnswerRecord:
        return await self.guard.submit(self.auth.current_identity(token), option_key)

    def identity(self, token: Optional[str]) -> Optional[Identity]:
        return self.auth.current_identity(token)

    # question authoring

    async def list_questions(self) -> List[Question]:
        return await self.questions.list()

    async def create_question(self, draft: QuestionIn) -> Question:
        return await self.questions.create(draft)

    async def update_question(self, question_id: str, draft: QuestionIn) -> Question:
        return await self.questions.update(question_id, draft)

    async def delete_question(self, question_id: str) -> None:
        await self.questions.delete(question_id)

    async def clear_answers(self) -> None:
        await self.guard.clear_all()
        await self.events.append({"type": "answers_cleared"})

    # user management

    def register_user(self, email: str, password: str) -> UserAccount:
        return self.auth.register(email, password)

    def list_users(self) -> List[UserAccount]:
        return self.auth.list_users()

    async def delete_user(self, uid: str) -> None:
        self.auth.delete_user(uid)
        await self.guard.clear_participant(uid)

    async def _publish_leaderboard(self, leaderboard: List[ParticipantScore]) -> None:
        await self.events.append({"type": "leaderboard", "leaderboard": [s.model_dump() for s in leaderboard]})

    async def _publish_game_state(self, state: GameState) -> None:
        await self.events.append({"type": "game_state", "state": state.model_dump()})
