"""
RegisterService: reference numbers, lifecycle transitions and approvals.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import update

from custody_kernel.domain.documents import DocumentKind
from custody_kernel.domain.register import RegisterKind, RegisterStatus
from custody_kernel.exceptions import (
    ApprovalRequiredError,
    EntityNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    MissingDocumentError,
    OfficeScopeError,
    RoleNotPermittedError,
    StaleStateError,
)
from custody_kernel.models.register import RegisterEntryModel
from custody_kernel.services.audit_service import AuditAction, AuditService
from custody_kernel.services.document_service import DocumentService
from custody_kernel.services.register_service import ENTITY_TYPE, RegisterLinks, RegisterService


@pytest.fixture
def documents(session, deterministic_clock) -> DocumentService:
    return DocumentService(session, deterministic_clock)


@pytest.fixture
def audit(session, deterministic_clock) -> AuditService:
    return AuditService(session, deterministic_clock)


@pytest.fixture
def register(session, deterministic_clock, audit, documents) -> RegisterService:
    return RegisterService(session, deterministic_clock, audit=audit, documents=documents)


def _transfer_entry(register, actor, world, status=RegisterStatus.PENDING_APPROVAL):
    return register.create(
        RegisterKind.TRANSFER, world.source_office_id, status,
        RegisterLinks(transfer_id=uuid4()), actor,
    )


# =============================================================================
# Creation
# =============================================================================


class TestCreate:

    def test_reference_number_uses_office_code_and_year(self, register, caretaker, world):
        entry = register.create(
            RegisterKind.ISSUE, world.source_office_id, RegisterStatus.COMPLETED,
            RegisterLinks(item_id=world.item_ids[0]), caretaker,
        )
        assert entry.reference_no == "ISS-CH-2024-000001"
        assert entry.item_id == world.item_ids[0]

    def test_sequence_is_per_kind(self, register, caretaker, world):
        first = register.create(
            RegisterKind.RETURN, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), caretaker,
        )
        second = register.create(
            RegisterKind.RETURN, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), caretaker,
        )
        other_kind = register.create(
            RegisterKind.ISSUE, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), caretaker,
        )
        assert first.reference_no.endswith("-000001")
        assert second.reference_no.endswith("-000002")
        assert other_kind.reference_no == "ISS-CH-2024-000001"

    def test_office_without_code_uses_initials(self, register, dest_caretaker, world):
        entry = register.create(
            RegisterKind.TRANSFER, world.dest_office_id, RegisterStatus.DRAFT, RegisterLinks(), dest_caretaker,
        )
        assert entry.reference_no.startswith("TRF-NDO-2024-")

    def test_sequence_restarts_each_year(self, register, caretaker, world, deterministic_clock):
        register.create(RegisterKind.ISSUE, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), caretaker)
        deterministic_clock.set_time(datetime(2025, 1, 2, tzinfo=timezone.utc))
        entry = register.create(
            RegisterKind.ISSUE, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), caretaker,
        )
        assert entry.reference_no == "ISS-CH-2025-000001"

    def test_office_required(self, register, admin):
        with pytest.raises(InvalidInputError) as exc_info:
            register.create(RegisterKind.ISSUE, None, RegisterStatus.DRAFT, RegisterLinks(), admin)
        assert exc_info.value.field == "office_id"

    def test_office_scope_enforced(self, register, dest_caretaker, world):
        with pytest.raises(OfficeScopeError):
            register.create(
                RegisterKind.ISSUE, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), dest_caretaker,
            )

    def test_creation_is_audited(self, register, audit, caretaker, world):
        entry = register.create(
            RegisterKind.ISSUE, world.source_office_id, RegisterStatus.COMPLETED, RegisterLinks(), caretaker,
        )
        (row,) = audit.get_trace(ENTITY_TYPE, entry.id)
        assert row.action == AuditAction.CREATE_RECORD.value
        assert row.diff["reference_no"] == entry.reference_no


# =============================================================================
# Transitions
# =============================================================================


class TestTransition:

    def test_transition_writes_status_and_audits(self, register, audit, caretaker, world):
        entry = register.create(
            RegisterKind.RETURN, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), caretaker,
        )
        register.transition(entry.id, RegisterStatus.COMPLETED, caretaker)
        assert register.get(entry.id).status == RegisterStatus.COMPLETED.value
        last = audit.get_trace(ENTITY_TYPE, entry.id)[-1]
        assert last.action == AuditAction.STATUS_CHANGE.value
        assert last.diff == {"from": "Draft", "to": "Completed"}

    def test_transition_outside_table(self, register, caretaker, world):
        entry = register.create(
            RegisterKind.RETURN, world.source_office_id, RegisterStatus.COMPLETED, RegisterLinks(), caretaker,
        )
        with pytest.raises(InvalidTransitionError):
            register.transition(entry.id, RegisterStatus.DRAFT, caretaker)

    def test_missing_entry(self, register, caretaker, world):
        with pytest.raises(EntityNotFoundError):
            register.transition(uuid4(), RegisterStatus.COMPLETED, caretaker)

    def test_approval_required_for_non_admin(self, register, caretaker, world):
        entry = _transfer_entry(register, caretaker, world)
        with pytest.raises(ApprovalRequiredError) as exc_info:
            register.transition(entry.id, RegisterStatus.APPROVED, caretaker)
        assert exc_info.value.target_status == "Approved"

    def test_admin_bypasses_approval(self, register, admin, world):
        entry = _transfer_entry(register, admin, world)
        register.transition(entry.id, RegisterStatus.APPROVED, admin)
        assert register.get(entry.id).status == "Approved"

    def test_completion_needs_challan(self, register, admin, world):
        entry = _transfer_entry(register, admin, world, status=RegisterStatus.APPROVED)
        with pytest.raises(MissingDocumentError) as exc_info:
            register.transition(entry.id, RegisterStatus.COMPLETED, admin)
        assert exc_info.value.required_kind == "TransferChallan"

    def test_approved_entry_completes_for_other_office(
        self, register, documents, caretaker, dest_caretaker, world,
    ):
        entry = _transfer_entry(register, caretaker, world, status=RegisterStatus.APPROVED)
        challan = documents.create(DocumentKind.TRANSFER_CHALLAN, world.dest_office_id, dest_caretaker, title="C")
        documents.link(challan.id, ENTITY_TYPE, entry.id)
        register.transition(entry.id, RegisterStatus.COMPLETED, dest_caretaker)
        assert register.get(entry.id).status == "Completed"

    def test_transition_is_conditional_on_previous_status(self, register, session, caretaker, world):
        entry = register.create(
            RegisterKind.RETURN, world.source_office_id, RegisterStatus.DRAFT, RegisterLinks(), caretaker,
        )
        # Another writer cancels the entry behind this session's back.
        session.execute(
            update(RegisterEntryModel)
            .where(RegisterEntryModel.id == entry.id)
            .values(status=RegisterStatus.CANCELLED.value)
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(StaleStateError):
            register.transition(entry.id, RegisterStatus.COMPLETED, caretaker)


# =============================================================================
# Upsert and find
# =============================================================================


class TestUpsert:

    def test_upsert_creates_then_transitions(self, register, caretaker, world):
        assignment_id = uuid4()
        links = RegisterLinks(assignment_id=assignment_id)
        created = register.upsert(
            RegisterKind.RETURN, world.source_office_id, RegisterStatus.DRAFT, links, caretaker,
            match_on="assignment_id",
        )
        moved = register.upsert(
            RegisterKind.RETURN, world.source_office_id, RegisterStatus.COMPLETED, links, caretaker,
            match_on="assignment_id",
        )
        assert moved.id == created.id
        assert register.get(created.id).status == "Completed"

    def test_upsert_same_status_is_noop(self, register, audit, caretaker, world):
        links = RegisterLinks(assignment_id=uuid4())
        entry = register.upsert(
            RegisterKind.ISSUE, world.source_office_id, RegisterStatus.COMPLETED, links, caretaker,
            match_on="assignment_id",
        )
        again = register.upsert(
            RegisterKind.ISSUE, world.source_office_id, RegisterStatus.COMPLETED, links, caretaker,
            match_on="assignment_id",
        )
        assert again.id == entry.id
        assert audit.actions_for(ENTITY_TYPE, entry.id) == [AuditAction.CREATE_RECORD.value]

    def test_find_by_link(self, register, caretaker, world):
        entry = _transfer_entry(register, caretaker, world)
        assert register.find(RegisterKind.TRANSFER, transfer_id=entry.transfer_id).id == entry.id
        assert register.find(RegisterKind.ISSUE, transfer_id=entry.transfer_id) is None


# =============================================================================
# Approvals
# =============================================================================


class TestApprovals:

    def test_request_moves_draft_to_pending(self, register, caretaker, world):
        entry = _transfer_entry(register, caretaker, world, status=RegisterStatus.DRAFT)
        approval = register.request_approval(entry.id, caretaker)
        assert approval.status == "Pending"
        assert register.get(entry.id).status == "PendingApproval"
        assert not register.has_approval(entry.id)

    def test_head_approves(self, register, caretaker, head, world):
        entry = _transfer_entry(register, caretaker, world)
        approval = register.request_approval(entry.id, caretaker)
        register.decide_approval(approval.id, head, approved=True, notes="ok")
        assert register.get(entry.id).status == "Approved"
        assert register.has_approval(entry.id)

    def test_head_rejects(self, register, caretaker, head, world):
        entry = _transfer_entry(register, caretaker, world)
        approval = register.request_approval(entry.id, caretaker)
        decided = register.decide_approval(approval.id, head, approved=False)
        assert decided.status == "Rejected"
        assert register.get(entry.id).status == "Rejected"

    def test_caretaker_cannot_decide(self, register, caretaker, world):
        entry = _transfer_entry(register, caretaker, world)
        approval = register.request_approval(entry.id, caretaker)
        with pytest.raises(RoleNotPermittedError):
            register.decide_approval(approval.id, caretaker, approved=True)

    def test_other_office_head_cannot_decide(self, register, caretaker, dest_head, world):
        entry = _transfer_entry(register, caretaker, world)
        approval = register.request_approval(entry.id, caretaker)
        with pytest.raises(OfficeScopeError):
            register.decide_approval(approval.id, dest_head, approved=True)

    def test_decided_approval_cannot_be_decided_again(self, register, caretaker, head, world):
        entry = _transfer_entry(register, caretaker, world)
        approval = register.request_approval(entry.id, caretaker)
        register.decide_approval(approval.id, head, approved=True)
        with pytest.raises(StaleStateError):
            register.decide_approval(approval.id, head, approved=False)

    def test_approval_unlocks_completion_for_non_admin(self, register, documents, caretaker, head, world):
        entry = _transfer_entry(register, caretaker, world, status=RegisterStatus.DRAFT)
        register.approve(entry.id, head)
        challan = documents.create(DocumentKind.TRANSFER_CHALLAN, world.source_office_id, caretaker, title="C")
        documents.link(challan.id, ENTITY_TYPE, entry.id)
        register.transition(entry.id, RegisterStatus.COMPLETED, caretaker)
        assert register.get(entry.id).status == "Completed"

    def test_approval_actions_audited(self, register, audit, caretaker, head, world):
        entry = _transfer_entry(register, caretaker, world)
        register.approve(entry.id, head)
        assert audit.actions_for(ENTITY_TYPE, entry.id) == [
            AuditAction.CREATE_RECORD.value,
            AuditAction.REQUEST_APPROVAL.value,
            AuditAction.APPROVE.value,
        ]
