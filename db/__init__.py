"""Database package with the listings model and session helpers."""

from .models import Listing
from .session import (
    close_db,
    engine_options,
    get_session_factory,
    init_db,
)

__all__ = [
    "Listing",
    "close_db",
    "engine_options",
    "get_session_factory",
    "init_db",
]
