from importlib.metadata import PackageNotFoundError, version as _version

from .config import settings
from .errors import ErrorKind, Outcome, SyncError, TransportError
from .models import User, UserFields, UserStats
from .services import UserService

"""
usersync – cached client for a remote users collection
======================================================

Fetches the collection once, serves reads from an in-memory snapshot and
funnels create/update/delete through a guarded coordinator so the snapshot
always reflects what the server committed.

Public objects
--------------
__version__ : str
    Semantic version string, filled at build time.
"""

__all__ = [
    "__version__",
    "settings",
    "UserService",
    "User",
    "UserFields",
    "UserStats",
    "Outcome",
    "ErrorKind",
    "SyncError",
    "TransportError",
]

try:
    __version__: str = _version("usersync")
except PackageNotFoundError:
    __version__ = "0.1.0"
