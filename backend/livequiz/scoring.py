"""Leaderboard derivation from the question bank and the stored answers."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from .models import AnswerRecord, ParticipantScore, Question

logger = logging.getLogger(__name__)

AnswerMap = Mapping[str, Mapping[str, AnswerRecord]]


def parse_answers(snapshot: Any) -> Dict[str, Dict[str, AnswerRecord]]:
    """Convert the raw ``answers`` tree into records, skipping malformed entries."""

    answers: Dict[str, Dict[str, AnswerRecord]] = {}
    if not isinstance(snapshot, dict):
        return answers

    for participant_id, records in snapshot.items():
        answers[participant_id] = {}
        if not isinstance(records, dict):
            continue
        for question_id, raw in records.items():
            try:
                answers[participant_id][question_id] = AnswerRecord.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping malformed answer %s/%s", participant_id, question_id)
    return answers


def _display_name(participant_id: str, records: Mapping[str, AnswerRecord]) -> str:
    # earliest record wins so the choice does not depend on iteration order
    ordered = sorted(records.items(), key=lambda item: (item[1].sort_timestamp, item[0]))
    for _, record in ordered:
        if record.user_name:
            return record.user_name
    return participant_id


def sort_leaderboard(scores: List[ParticipantScore]) -> List[ParticipantScore]:
    return sorted(scores, key=lambda s: (-s.score, s.last_correct_answer_at, s.participant_id))


def compute_leaderboard(questions: Mapping[str, Question], answers: AnswerMap) -> List[ParticipantScore]:
    """Rank every participant that has answered at least once.

    A record scores when its question is still in the bank and the chosen
    option matches ``right_answer``. Ties on score go to the participant whose
    last correct answer came first.
    """

    scores: List[ParticipantScore] = []
    for participant_id, records in answers.items():
        entry = ParticipantScore(
            participant_id=participant_id,
            display_name=_display_name(participant_id, records),
        )
        for question_id, record in records.items():
            question = questions.get(question_id)
            if question is None:
                continue
            if record.option_key == question.right_answer:
                entry.score += 1
                entry.last_correct_answer_at = max(entry.last_correct_answer_at, record.sort_timestamp)
        scores.append(entry)

    return sort_leaderboard(scores)
