"""ekstore - typed access to the macOS calendar and reminder store."""

from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .predicates import Predicate
from .session import AccessLevel
from .store import EventStore, create_backend, open_store

__version__ = "0.1.0"

__all__ = [
    "AccessLevel",
    "EventStore",
    "Predicate",
    "create_backend",
    "open_store",
    *_core_all,
]
