from __future__ import annotations

from unittest import IsolatedAsyncioTestCase, TestCase

from pydantic import ValidationError

from .db import InMemoryRealtimeStore
from .errors import QuestionNotFound
from .models import AnswerOption, QuestionIn
from .questions import QuestionBank, parse_questions


def _options():
    return [AnswerOption(key=k, text=f"option {k}") for k in (4, 2, 3, 1)]


class QuestionModelTests(TestCase):
    def test_options_are_sorted_by_key(self):
        draft = QuestionIn(text="q", options=_options(), right_answer=1)

        self.assertEqual([o.key for o in draft.options], [1, 2, 3, 4])

    def test_needs_exactly_the_four_keys(self):
        with self.assertRaises(ValidationError):
            QuestionIn(text="q", options=_options()[:3], right_answer=1)
        with self.assertRaises(ValidationError):
            QuestionIn(text="q", options=[AnswerOption(key=1, text="a")] * 4, right_answer=1)

    def test_right_answer_must_be_an_option(self):
        with self.assertRaises(ValidationError):
            QuestionIn(text="q", options=_options(), right_answer=0)


class QuestionBankTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryRealtimeStore()
        self.bank = QuestionBank(self.store)

    async def test_create_and_list_in_creation_order(self):
        first = await self.bank.create(QuestionIn(text="first", options=_options(), right_answer=1))
        second = await self.bank.create(QuestionIn(text="second", options=_options(), right_answer=2))

        self.assertEqual([q.id for q in await self.bank.list()], [first.id, second.id])
        self.assertEqual(await self.bank.get(first.id), first)

    async def test_update_keeps_identity_and_creation_time(self):
        original = await self.bank.create(QuestionIn(text="before", options=_options(), right_answer=1))

        updated = await self.bank.update(original.id, QuestionIn(text="after", options=_options(), right_answer=3))

        self.assertEqual(updated.id, original.id)
        self.assertEqual(updated.created_at, original.created_at)
        self.assertEqual((await self.bank.get(original.id)).right_answer, 3)

    async def test_unknown_ids_raise(self):
        draft = QuestionIn(text="q", options=_options(), right_answer=1)

        with self.assertRaises(QuestionNotFound):
            await self.bank.update("missing", draft)
        with self.assertRaises(QuestionNotFound):
            await self.bank.delete("missing")

    async def test_ids_with_reserved_characters_are_unknown(self):
        draft = QuestionIn(text="q", options=_options(), right_answer=1)

        for bad_id in ("a.b", "x$y", "q#1", "a[0]"):
            with self.subTest(bad_id=bad_id):
                self.assertIsNone(await self.bank.get(bad_id))
                with self.assertRaises(QuestionNotFound):
                    await self.bank.update(bad_id, draft)
                with self.assertRaises(QuestionNotFound):
                    await self.bank.delete(bad_id)

    async def test_delete_leaves_answers_alone(self):
        question = await self.bank.create(QuestionIn(text="q", options=_options(), right_answer=1))
        await self.store.write(f"answers/p1/{question.id}", {"option_key": 1})

        await self.bank.delete(question.id)

        self.assertIsNone(await self.bank.get(question.id))
        self.assertEqual(await self.store.get(f"answers/p1/{question.id}"), {"option_key": 1})

    async def test_parse_skips_malformed_questions(self):
        parsed = parse_questions(
            {
                "good": {"text": "q", "options": [o.model_dump() for o in _options()], "right_answer": 1},
                "bad": {"text": "q", "options": [], "right_answer": 1},
                "junk": 5,
            }
        )

        self.assertEqual(list(parsed), ["good"])
