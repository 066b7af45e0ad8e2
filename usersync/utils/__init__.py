from .logger import FORMAT, LOG_DIR, logger, silence_libs, timeit
from .cache import NEW_ENTITY_KEY, ResourceCache, Snapshot

__all__ = [
    "logger",
    "FORMAT",
    "LOG_DIR",
    "silence_libs",
    "timeit",
    "ResourceCache",
    "Snapshot",
    "NEW_ENTITY_KEY",
]
