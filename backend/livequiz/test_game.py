from __future__ import annotations

from unittest import IsolatedAsyncioTestCase

from .db import InMemoryRealtimeStore
from .errors import QuestionNotFound
from .game import ClearPolicy, GameController, public_view
from .models import AnswerOption, GameState, QuestionIn
from .questions import QuestionBank


def _draft(text: str = "2 + 2?", right_answer: int = 2) -> QuestionIn:
    return QuestionIn(
        text=text,
        options=[AnswerOption(key=k, text=str(k + 2)) for k in (1, 2, 3, 4)],
        right_answer=right_answer,
    )


class GameControllerTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryRealtimeStore()
        self.bank = QuestionBank(self.store)
        self.controller = GameController(self.store, self.bank)
        self.q1 = await self.bank.create(_draft("first"))
        self.q2 = await self.bank.create(_draft("second"))

    async def test_initial_state_is_paused_and_hidden(self):
        state = await self.controller.get_state()

        self.assertTrue(state.is_paused)
        self.assertFalse(state.answer_revealed)

    async def test_activate_sets_question_and_hides_answer(self):
        state = await self.controller.activate(self.q1.id)

        self.assertEqual(state.active_question_id, self.q1.id)
        self.assertFalse(state.answer_revealed)
        self.assertIsNotNone(state.activated_at)
        self.assertEqual(await self.controller.get_state(), state)

    async def test_activating_new_question_resets_reveal(self):
        await self.controller.activate(self.q1.id)
        revealed = await self.controller.toggle_reveal()
        self.assertTrue(revealed.answer_revealed)

        state = await self.controller.activate(self.q2.id)

        self.assertEqual(state.active_question_id, self.q2.id)
        self.assertFalse((await self.controller.get_state()).answer_revealed)

    async def test_malformed_stored_state_reads_as_paused(self):
        await self.store.write("game_state", {"active_question_id": self.q1.id, "answer_revealed": "maybe"})

        self.assertEqual(await self.controller.get_state(), GameState())

        state = await self.controller.activate(self.q2.id)
        self.assertEqual(state.active_question_id, self.q2.id)

    async def test_activate_id_with_reserved_characters_is_not_found(self):
        with self.assertRaises(QuestionNotFound):
            await self.controller.activate("a.b")

    async def test_activate_unknown_question_fails(self):
        with self.assertRaises(QuestionNotFound):
            await self.controller.activate("missing")

        self.assertTrue((await self.controller.get_state()).is_paused)

    async def test_clear_is_idempotent_and_preserves_reveal_by_default(self):
        await self.controller.activate(self.q1.id)
        await self.controller.toggle_reveal()

        first = await self.controller.clear()
        second = await self.controller.clear()

        self.assertTrue(first.is_paused)
        self.assertTrue(first.answer_revealed)
        self.assertEqual(first, second)

    async def test_clear_can_reset_reveal(self):
        controller = GameController(self.store, self.bank, ClearPolicy.RESET_REVEAL)
        await controller.activate(self.q1.id)
        await controller.toggle_reveal()

        state = await controller.clear()

        self.assertTrue(state.is_paused)
        self.assertFalse(state.answer_revealed)

    async def test_toggle_reveal_without_active_question(self):
        state = await self.controller.toggle_reveal()

        self.assertTrue(state.is_paused)
        self.assertTrue(state.answer_revealed)
        self.assertFalse((await self.controller.toggle_reveal()).answer_revealed)


class PublicViewTests(IsolatedAsyncioTestCase):
    async def test_right_answer_only_shown_when_revealed(self):
        store = InMemoryRealtimeStore()
        bank = QuestionBank(store)
        question = await bank.create(_draft(right_answer=3))
        questions = await bank.all()

        hidden = public_view(GameState(active_question_id=question.id), questions)
        shown = public_view(GameState(active_question_id=question.id, answer_revealed=True), questions)

        self.assertEqual(hidden["status"], "active")
        self.assertIsNone(hidden["question"]["right_answer"])
        self.assertEqual(shown["question"]["right_answer"], 3)

    async def test_deleted_active_question_reads_as_paused(self):
        view = public_view(GameState(active_question_id="gone"), {})

        self.assertEqual(view["status"], "paused")
        self.assertIsNone(view["question"])
