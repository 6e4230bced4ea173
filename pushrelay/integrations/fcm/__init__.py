"""
Firebase Cloud Messaging integration
=====================================

Public re-exports for the FCM push dispatch pipeline.
"""

from .batchBuilder import FCM_BATCH_LIMIT, NotificationBatch, build_batches
from .clientCache import ClientCache, CredentialMaterial, FCMClient
from .dispatcher import DispatchOutcome, Dispatcher, RecipientResult
from .pushService import (
    AndroidPushController,
    RetryState,
    get_push_controller,
    push_to_android,
)
from .reconciler import ReconcileResult, Reconciler

__all__ = [
    "FCM_BATCH_LIMIT",
    "AndroidPushController",
    "ClientCache",
    "CredentialMaterial",
    "DispatchOutcome",
    "Dispatcher",
    "FCMClient",
    "NotificationBatch",
    "RecipientResult",
    "ReconcileResult",
    "Reconciler",
    "RetryState",
    "build_batches",
    "get_push_controller",
    "push_to_android",
]
