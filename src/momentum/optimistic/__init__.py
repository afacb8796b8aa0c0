"""Optimistic updates with rollback."""

from momentum.optimistic.executor import (
    OperationStatus,
    OptimisticExecutor,
    OptimisticState,
    PendingOptimisticOperation,
)

__all__ = [
    "OperationStatus",
    "OptimisticExecutor",
    "OptimisticState",
    "PendingOptimisticOperation",
]
