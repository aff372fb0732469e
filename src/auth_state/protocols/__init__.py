"""Protocol interfaces for pluggable collaborators."""

from auth_state.codecs import Codec
from auth_state.protocols.capabilities import AuthCapabilities, CredsFactory, KeyDecoder
from auth_state.protocols.database import Database, Row

__all__ = [
    "AuthCapabilities",
    "Codec",
    "CredsFactory",
    "Database",
    "KeyDecoder",
    "Row",
]
