from pydantic import BaseModel
from typing import List, Optional
from .models import AnswerOption, ParticipantScore


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterUserIn(BaseModel):
    email: str
    password: str


class ActivateIn(BaseModel):
    question_id: str


class AnswerIn(BaseModel):
    option_key: int


class TopicIn(BaseModel):
    topic: str = ""


class QuestionOut(BaseModel):
    id: str
    text: str
    options: List[AnswerOption]
    right_answer: int
    created_at: int


class GameStateOut(BaseModel):
    active_question_id: Optional[str]
    answer_revealed: bool
    activated_at: Optional[int]


class LeaderboardOut(BaseModel):
    ready: bool
    leaderboard: List[ParticipantScore]


class UserOut(BaseModel):
    uid: str
    email: str
    created_at: str
    last_sign_in_at: Optional[str]
