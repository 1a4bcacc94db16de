import logging
import math
from numbers import Real
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

OPTION_KEYS = (1, 2, 3, 4)


class AnswerOption(BaseModel):
    key: int = Field(ge=1, le=4)
    text: str


class QuestionIn(BaseModel):
    """Authoring payload, also produced by the AI generator."""

    text: str = Field(min_length=1)
    options: List[AnswerOption]
    right_answer: int

    @field_validator("options")
    @classmethod
    def _four_distinct_options(cls, value: List[AnswerOption]) -> List[AnswerOption]:
        if sorted(o.key for o in value) != list(OPTION_KEYS):
            raise ValueError("options must contain exactly the keys 1, 2, 3 and 4")
        return sorted(value, key=lambda o: o.key)

    @model_validator(mode="after")
    def _right_answer_is_an_option(self):
        if self.right_answer not in {o.key for o in self.options}:
            raise ValueError("right_answer must be one of the option keys")
        return self


class Question(QuestionIn):
    id: str
    created_at: int = 0

    def option_keys(self) -> set[int]:
        return {o.key for o in self.options}

    def to_snapshot(self) -> dict:
        return self.model_dump(exclude={"id"})


class GameState(BaseModel):
    active_question_id: Optional[str] = None
    answer_revealed: bool = False
    activated_at: Optional[int] = None

    @property
    def is_paused(self) -> bool:
        return not self.active_question_id

    @classmethod
    def from_snapshot(cls, value: Any) -> "GameState":
        if not isinstance(value, dict):
            return cls()
        try:
            return cls(**value)
        except ValidationError:
            logger.warning("Ignoring malformed game state %r", value)
            return cls()


class AnswerRecord(BaseModel):
    option_key: int
    timestamp: Optional[float] = None
    user_name: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _numeric_timestamp(cls, value: Any) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, Real):
            return None
        try:
            value = float(value)
        except OverflowError:
            return None
        return value if math.isfinite(value) else None

    @property
    def sort_timestamp(self) -> float:
        return self.timestamp if self.timestamp is not None else 0


class ParticipantScore(BaseModel):
    participant_id: str
    display_name: str
    score: int = 0
    last_correct_answer_at: float = 0


class Identity(BaseModel):
    participant_id: str
    display_name: str
