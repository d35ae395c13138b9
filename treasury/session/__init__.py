"""
Session Package

The logged-in user's ledger: authentication, the session store that owns
the LedgerState, and the persistence that loads and saves it.
"""

from treasury.session.auth import (
    AuthenticationError,
    AuthService,
    user_id_for_email,
)
from treasury.session.persistence import DebouncedSaver, StatePersistence
from treasury.session.store import FinanceSession, open_session

__all__ = [
    "AuthenticationError",
    "AuthService",
    "DebouncedSaver",
    "FinanceSession",
    "StatePersistence",
    "open_session",
    "user_id_for_email",
]
