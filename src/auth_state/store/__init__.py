"""Cache-coherent auth state storage."""

from auth_state.store.auth_state import (
    APP_STATE_SYNC_KEY,
    CREDS_KEY,
    AuthenticationState,
    AuthStateStore,
    SignalKeyStore,
    open_auth_state,
    validate_identity,
)
from auth_state.store.batch import FanOut
from auth_state.store.repository import AuthStateRepository
from auth_state.store.result import ReadResult, ReadStatus

__all__ = [
    "APP_STATE_SYNC_KEY",
    "CREDS_KEY",
    "AuthStateRepository",
    "AuthStateStore",
    "AuthenticationState",
    "FanOut",
    "ReadResult",
    "ReadStatus",
    "SignalKeyStore",
    "open_auth_state",
    "validate_identity",
]
