from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Mapping

from .models import GameState, Question
from .questions import QuestionBank

logger = logging.getLogger(__name__)

GAME_STATE_PATH = "game_state"


class ClearPolicy(str, Enum):
    PRESERVE_REVEAL = "preserve_reveal"
    RESET_REVEAL = "reset_reveal"


# States: (paused | active) x (hidden | revealed); activate -> (active, hidden)
class GameController:
    def __init__(self, store, questions: QuestionBank, clear_policy: ClearPolicy = ClearPolicy.PRESERVE_REVEAL):
        self.store = store
        self.questions = questions
        self.clear_policy = clear_policy
        self._lock = asyncio.Lock()

    async def get_state(self) -> GameState:
        return GameState.from_snapshot(await self.store.get(GAME_STATE_PATH))

    async def activate(self, question_id: str) -> GameState:
        await self.questions.require(question_id)
        async with self._lock:
            # always a full overwrite so the reveal flag cannot leak into the new question
            state = GameState(
                active_question_id=question_id,
                answer_revealed=False,
                activated_at=self.store.server_timestamp(),
            )
            await self.store.write(GAME_STATE_PATH, state.model_dump())
        logger.info("Question %s is now active (answers hidden)", question_id)
        return state

    async def clear(self) -> GameState:
        async with self._lock:
            changes = {"active_question_id": None}
            if self.clear_policy == ClearPolicy.RESET_REVEAL:
                changes["answer_revealed"] = False
            await self.store.update(GAME_STATE_PATH, changes)
            state = await self.get_state()
        logger.info("Active question cleared (game paused)")
        return state

    async def toggle_reveal(self) -> GameState:
        async with self._lock:
            current = await self.get_state()
            await self.store.update(GAME_STATE_PATH, {"answer_revealed": not current.answer_revealed})
            state = await self.get_state()
        logger.info("Answers are now %s", "shown" if state.answer_revealed else "hidden")
        return state


def public_view(state: GameState, questions: Mapping[str, Question]) -> dict:
    """What participants may see: the active question, and its answer once revealed."""

    question = questions.get(state.active_question_id) if state.active_question_id else None
    view = {
        "status": "paused" if question is None else "active",
        "answer_revealed": state.answer_revealed,
        "activated_at": state.activated_at,
        "question": None,
    }
    if question is not None:
        view["question"] = {
            "id": question.id,
            "text": question.text,
            "options": [o.model_dump() for o in question.options],
            "right_answer": question.right_answer if state.answer_revealed else None,
        }
    return view
