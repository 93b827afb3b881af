"""Broker infrastructure: per-channel reconciliation and bulk initialization."""

from .initializer import InfrastructureInitializer, InfrastructureStatus
from .reconciler import (
    EnsureStrategy,
    InfrastructureReconciler,
    ReconcileMode,
    ReconcileReport,
    ResourceMemo,
    ValidateStrategy,
)

__all__ = [
    "EnsureStrategy",
    "InfrastructureInitializer",
    "InfrastructureReconciler",
    "InfrastructureStatus",
    "ReconcileMode",
    "ReconcileReport",
    "ResourceMemo",
    "ValidateStrategy",
]
