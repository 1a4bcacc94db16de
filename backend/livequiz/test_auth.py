from __future__ import annotations

import asyncio
from unittest import IsolatedAsyncioTestCase

from .auth import InMemoryAuthProvider
from .errors import InvalidCredentials, RegistrationError, UserNotFound


class AuthProviderTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.auth = InMemoryAuthProvider(min_password_length=6)

    async def test_register_and_sign_in(self):
        account = self.auth.register("Alice@Example.com ", "secret1")

        token = self.auth.sign_in("alice@example.com", "secret1")
        identity = self.auth.current_identity(token)

        self.assertEqual(identity.participant_id, account.uid)
        self.assertEqual(identity.display_name, "alice@example.com")
        self.assertIsNotNone(account.last_sign_in_at)

    async def test_registration_rules(self):
        with self.assertRaises(RegistrationError):
            self.auth.register("not-an-email", "secret1")
        with self.assertRaises(RegistrationError):
            self.auth.register("bob@example.com", "short")

        self.auth.register("bob@example.com", "secret1")
        with self.assertRaises(RegistrationError):
            self.auth.register("BOB@example.com", "secret2")

    async def test_wrong_password_is_rejected(self):
        self.auth.register("carol@example.com", "secret1")

        with self.assertRaises(InvalidCredentials):
            self.auth.sign_in("carol@example.com", "secret2")
        with self.assertRaises(InvalidCredentials):
            self.auth.sign_in("nobody@example.com", "secret1")

    async def test_unknown_token_has_no_identity(self):
        self.assertIsNone(self.auth.current_identity(None))
        self.assertIsNone(self.auth.current_identity("nope"))

    async def test_auth_state_stream(self):
        self.auth.register("dave@example.com", "secret1")
        token = self.auth.sign_in("dave@example.com", "secret1")
        sub = self.auth.subscribe(token)

        first = await asyncio.wait_for(sub.__anext__(), 1)
        self.assertEqual(first.display_name, "dave@example.com")

        self.auth.sign_out(token)

        self.assertIsNone(await asyncio.wait_for(sub.__anext__(), 1))
        with self.assertRaises(StopAsyncIteration):
            await asyncio.wait_for(sub.__anext__(), 1)
        self.assertIsNone(self.auth.current_identity(token))

    async def test_delete_user_signs_them_out(self):
        account = self.auth.register("erin@example.com", "secret1")
        token = self.auth.sign_in("erin@example.com", "secret1")

        self.auth.delete_user(account.uid)

        self.assertIsNone(self.auth.current_identity(token))
        self.assertEqual(self.auth.list_users(), [])
        with self.assertRaises(UserNotFound):
            self.auth.delete_user(account.uid)
