"""Kernel services: item registry and the document, register, audit and notification collaborators."""

from custody_kernel.services.audit_service import AuditAction, AuditService
from custody_kernel.services.category_scope import CategoryScopePolicy, LabOnlyCategoryPolicy
from custody_kernel.services.document_service import DocumentService
from custody_kernel.services.item_registry import ItemRegistry
from custody_kernel.services.notification_service import (
    DatabaseNotificationService,
    NotificationDispatcher,
    NotificationEvent,
    NotificationMessage,
    NotificationService,
)
from custody_kernel.services.register_service import RegisterLinks, RegisterService
from custody_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditAction",
    "AuditService",
    "CategoryScopePolicy",
    "DatabaseNotificationService",
    "DocumentService",
    "ItemRegistry",
    "LabOnlyCategoryPolicy",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationMessage",
    "NotificationService",
    "RegisterLinks",
    "RegisterService",
    "SequenceService",
]
