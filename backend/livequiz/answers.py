from __future__ import annotations

import logging
from typing import Optional, Set, Tuple

from .errors import AlreadyAnswered, AuthRequired, InvalidOption, NoActiveQuestion, StoreUnavailable
from .game import GameController
from .models import AnswerRecord, Identity
from .questions import QuestionBank

logger = logging.getLogger(__name__)

ANSWERS_PATH = "answers"


def answer_path(participant_id: str, question_id: str) -> str:
    return f"{ANSWERS_PATH}/{participant_id}/{question_id}"


class SubmissionGuard:
    """Accepts at most one answer per participant for the active question.

    The existence check and the write are separate store calls, so two
    simultaneous submissions from the same account can both pass the check.
    Both write the same key, and the later write wins.
    """

    def __init__(self, store, questions: QuestionBank, game: GameController):
        self.store = store
        self.questions = questions
        self.game = game
        self._answered: Set[Tuple[str, str]] = set()

    async def submit(self, identity: Optional[Identity], option_key: int) -> AnswerRecord:
        if identity is None:
            raise AuthRequired()

        state = await self.game.get_state()
        if state.is_paused:
            raise NoActiveQuestion()

        question = await self.questions.get(state.active_question_id)
        if question is None:
            raise NoActiveQuestion()

        if option_key not in question.option_keys():
            logger.warning(
                "Participant %s sent option %r for question %s", identity.participant_id, option_key, question.id
            )
            raise InvalidOption()

        key = (identity.participant_id, question.id)
        if key in self._answered or await self.store.get(answer_path(*key)) is not None:
            self._answered.add(key)
            logger.info("Rejected second answer from %s for question %s", identity.participant_id, question.id)
            raise AlreadyAnswered()

        record = AnswerRecord(
            option_key=option_key,
            timestamp=self.store.server_timestamp(),
            user_name=identity.display_name,
        )
        self._answered.add(key)
        try:
            await self.store.write(answer_path(*key), record.model_dump())
        except StoreUnavailable:
            self._answered.discard(key)
            raise

        logger.info("Accepted answer from %s for question %s", identity.participant_id, question.id)
        return record

    async def has_answered(self, identity: Optional[Identity], question_id: Optional[str]) -> bool:
        if identity is None or not question_id:
            return False
        key = (identity.participant_id, question_id)
        if key in self._answered:
            return True
        return await self.store.get(answer_path(*key)) is not None

    async def clear_all(self) -> None:
        await self.store.delete(ANSWERS_PATH)
        self._answered.clear()
        logger.info("All answers cleared")

    async def clear_participant(self, participant_id: str) -> None:
        await self.store.delete(f"{ANSWERS_PATH}/{participant_id}")
        self._answered = {k for k in self._answered if k[0] != participant_id}
