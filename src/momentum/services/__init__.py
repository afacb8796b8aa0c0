"""Domain services — user actions expressed as optimistic cache updates."""

from momentum.services.chores import ChoresService
from momentum.services.errors import (
    EntityNotFound,
    InsufficientPoints,
    NoHousehold,
    ServiceError,
)
from momentum.services.rewards import RewardsService

__all__ = [
    "ChoresService",
    "EntityNotFound",
    "InsufficientPoints",
    "NoHousehold",
    "RewardsService",
    "ServiceError",
]
