"""
Authentication Stub

There is no real credential check: any non-empty email and password log
in. The user id is derived from the email so the same address always
finds the same ledger.

The logged-in user is kept as the `current_user` record in the global
namespace of the record store.
"""

import re
from typing import Optional

from treasury.audit.logger import AuditLogger
from treasury.models.finance import User
from treasury.services.storage.interface import GLOBAL_NAMESPACE, RecordStore


CURRENT_USER_KEY = "current_user"

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


class AuthenticationError(Exception):
    """Login rejected."""
    pass


def user_id_for_email(email: str) -> str:
    """'jane.doe@example.com' -> 'jane_doe_example_com'"""
    return _NON_ALPHANUMERIC.sub("_", email)


class AuthService:
    """Login, logout and lookup of the current user."""

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    async def login(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
    ) -> User:
        """
        Log a user in and remember them as the current user.

        Raises:
            AuthenticationError: If email or password is empty
        """
        email = (email or "").strip()
        if not email or not password:
            raise AuthenticationError("Email and password are required")

        name = (name or "").strip()
        user = User(
            id=user_id_for_email(email),
            username=name or email.split("@")[0],
            email=email,
        )

        await self._store.put(GLOBAL_NAMESPACE, CURRENT_USER_KEY, user.to_record())
        self._audit.log_user_logged_in(user.id, user.username)
        return user

    async def logout(self) -> None:
        user = await self.current_user()
        await self._store.delete(GLOBAL_NAMESPACE, CURRENT_USER_KEY)
        if user is not None:
            self._audit.log_user_logged_out(user.id)

    async def current_user(self) -> Optional[User]:
        data = await self._store.get(GLOBAL_NAMESPACE, CURRENT_USER_KEY)
        if not data:
            return None
        return User.model_validate(data)
