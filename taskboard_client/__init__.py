from taskboard_client.cache import CacheEntry, CacheStatus, EntityCache, QueryKey
from taskboard_client.models import Board, BoardPage, BoardStatus, BoardType, Identity
from taskboard_client.mutations import (
    DuplicateNameError,
    MutationEngine,
    MutationError,
    MutationFailedError,
    NotAuthenticatedError,
)
from taskboard_client.services import BoardClientService

__all__ = [
    "Board",
    "BoardClientService",
    "BoardPage",
    "BoardStatus",
    "BoardType",
    "CacheEntry",
    "CacheStatus",
    "DuplicateNameError",
    "EntityCache",
    "Identity",
    "MutationEngine",
    "MutationError",
    "MutationFailedError",
    "NotAuthenticatedError",
    "QueryKey",
]
