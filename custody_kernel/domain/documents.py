"""Document kinds and statuses shared by the workflows and the document service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DocumentKind(str, Enum):
    ISSUE_SLIP = "IssueSlip"
    RETURN_SLIP = "ReturnSlip"
    TRANSFER_CHALLAN = "TransferChallan"
    MAINTENANCE_JOB_CARD = "MaintenanceJobCard"
    WARRANTY = "Warranty"
    INVOICE = "Invoice"
    DISPOSAL_APPROVAL = "DisposalApproval"
    INCIDENT_REPORT = "IncidentReport"
    OTHER = "Other"


class DocumentStatus(str, Enum):
    DRAFT = "Draft"
    FINAL = "Final"
    ARCHIVED = "Archived"


@dataclass(frozen=True)
class SignedFile:
    """An uploaded signed scan.  Size and digest are derived from ``content``."""

    file_name: str
    mime_type: str
    content: bytes
    storage_key: str | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.content)
