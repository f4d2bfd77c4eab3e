"""Kernel ORM models.  Workflow models live in their custody_modules packages."""

from custody_kernel.models.audit_log import AuditLogModel
from custody_kernel.models.document import DocumentLinkModel, DocumentModel, DocumentVersionModel
from custody_kernel.models.item import ItemModel
from custody_kernel.models.notification import NotificationModel
from custody_kernel.models.reference import (
    CatalogAssetModel,
    CategoryModel,
    EmployeeModel,
    OfficeModel,
    RequisitionLineModel,
    RequisitionModel,
    RoomModel,
    StoreModel,
    UserModel,
)
from custody_kernel.models.register import RegisterApprovalModel, RegisterEntryModel
from custody_kernel.models.sequence import SequenceCounterModel

__all__ = [
    "AuditLogModel",
    "CatalogAssetModel",
    "CategoryModel",
    "DocumentLinkModel",
    "DocumentModel",
    "DocumentVersionModel",
    "EmployeeModel",
    "ItemModel",
    "NotificationModel",
    "OfficeModel",
    "RegisterApprovalModel",
    "RegisterEntryModel",
    "RequisitionLineModel",
    "RequisitionModel",
    "RoomModel",
    "SequenceCounterModel",
    "StoreModel",
    "UserModel",
]
