from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from .db import Settings
from .errors import GenerationError, GenerationUnavailable
from .models import QuestionIn

logger = logging.getLogger(__name__)

QUESTION_PROMPT = (
    'Generate a single multiple-choice quiz question based on the topic: "{topic}". '
    "The question must have exactly four answer options. Respond with a JSON object of the form "
    '{{"question": str, "answers": [{{"key": 1-4, "text": str}}, ...4 items], "right_answer": 1-4}} '
    'where "right_answer" is the key of the correct option.'
)

NOTE_PROMPT = (
    'Generate a concise, informative short note about the topic: "{topic}". '
    "Structure the response clearly using bullet points or short paragraphs. "
    "The note should be educational and directly relevant to the topic."
)


class QuizGenerator:
    """Drafts questions and study notes with an OpenAI chat model."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.OPENAI_API_KEY:
                raise GenerationUnavailable()
            self._client = OpenAI(api_key=self.settings.OPENAI_API_KEY)
        return self._client

    async def _complete(self, messages: List[Dict[str, Any]], **kwargs: Any) -> str:
        client = self.client
        try:
            response = await asyncio.to_thread(
                client.chat.completions.create,
                model=self.settings.OPENAI_MODEL,
                messages=messages,
                **kwargs,
            )
        except OpenAIError as exc:
            logger.error("AI generation request failed", exc_info=True)
            raise GenerationError() from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.error("AI response did not contain any text")
            raise GenerationError("AI failed to generate content. Response was empty.")
        return content

    async def draft_question(self, topic: str) -> QuestionIn:
        raw = await self._complete(
            [{"role": "user", "content": QUESTION_PROMPT.format(topic=topic)}],
            temperature=self.settings.QUESTION_TEMPERATURE,
            response_format={"type": "json_object"},
        )
        try:
            data = json.loads(raw)
            return QuestionIn(
                text=data["question"],
                options=data["answers"],
                right_answer=data["right_answer"],
            )
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.warning("AI returned an unusable question for topic %r", topic)
            raise GenerationError("AI failed to generate a complete quiz question.") from exc

    async def write_note(self, topic: str) -> str:
        return await self._complete(
            [{"role": "user", "content": NOTE_PROMPT.format(topic=topic)}],
            temperature=self.settings.NOTE_TEMPERATURE,
        )
