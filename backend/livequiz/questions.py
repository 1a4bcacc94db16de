from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from .errors import QuestionNotFound
from .models import Question, QuestionIn

logger = logging.getLogger(__name__)

QUESTIONS_PATH = "questions"


def parse_questions(snapshot: Any) -> Dict[str, Question]:
    questions: Dict[str, Question] = {}
    if not isinstance(snapshot, dict):
        return questions

    for question_id, raw in snapshot.items():
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed question %s", question_id)
            continue
        try:
            questions[question_id] = Question(**{**raw, "id": question_id})
        except ValidationError:
            logger.warning("Skipping malformed question %s", question_id)
    return questions


class QuestionBank:
    def __init__(self, store):
        self.store = store

    async def create(self, draft: QuestionIn) -> Question:
        created_at = self.store.server_timestamp()
        payload = {**draft.model_dump(), "created_at": created_at}
        question_id = await self.store.push(QUESTIONS_PATH, payload)
        logger.info("Created question %s", question_id)
        return Question(id=question_id, **payload)

    async def get(self, question_id: str) -> Question | None:
        try:
            raw = await self.store.get(f"{QUESTIONS_PATH}/{question_id}")
        except ValueError:
            # ids with reserved path characters can never have been issued
            return None
        if raw is None:
            return None
        return parse_questions({question_id: raw}).get(question_id)

    async def require(self, question_id: str) -> Question:
        question = await self.get(question_id)
        if question is None:
            raise QuestionNotFound(f"Question {question_id} not found")
        return question

    async def update(self, question_id: str, draft: QuestionIn) -> Question:
        existing = await self.require(question_id)
        # id and creation time never change
        updated = Question(id=existing.id, created_at=existing.created_at, **draft.model_dump())
        await self.store.write(f"{QUESTIONS_PATH}/{question_id}", updated.to_snapshot())
        logger.info("Updated question %s", question_id)
        return updated

    async def delete(self, question_id: str) -> None:
        await self.require(question_id)
        # answers referencing the question are left in place
        await self.store.delete(f"{QUESTIONS_PATH}/{question_id}")
        logger.info("Deleted question %s", question_id)

    async def all(self) -> Dict[str, Question]:
        return parse_questions(await self.store.get(QUESTIONS_PATH))

    async def list(self) -> List[Question]:
        questions = await self.all()
        return sorted(questions.values(), key=lambda q: (q.created_at, q.id))
