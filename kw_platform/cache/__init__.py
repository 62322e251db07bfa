# Public surface of the client cache package.
from ._entity_store import EntityStore
from ._notify import Notification, Notifier
from ._state_store import ACTIVE_PROFILE, NAMESPACES, PROFILES, StateStore
from ._types import Collection, CollectionState, OpResult, Status
from .facade import CacheEngine, create_engine

__all__ = [
    "CacheEngine",
    "create_engine",
    "EntityStore",
    "StateStore",
    "Notifier",
    "Notification",
    "Collection",
    "CollectionState",
    "OpResult",
    "Status",
    "PROFILES",
    "ACTIVE_PROFILE",
    "NAMESPACES",
]
