"""
Typed Exception Hierarchy for the Custody Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Custody workflows fail for a small number of well understood reasons, and
callers (the HTTP layer, tests, batch scripts) must be able to tell them
apart without parsing message strings.  Every exception therefore carries:

  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. An HTTP_STATUS attribute (the status the request boundary returns)
  4. Structured DATA (entity ids, states) as instance attributes

Example:
    try:
        service.issue(actor, assignment_id, signed_file)
    except StaleStateError as e:
        # another request won the race; re-fetch and decide
        log.info("issue_lost_race", extra={"expected": e.expected_state})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CustodyKernelError (base, 500)
    |
    +-- ValidationError (400)
    |   +-- InvalidInputError
    |   +-- ReferenceMismatchError
    |   +-- CategoryScopeError
    |
    +-- NotFoundError (404)
    |   +-- EntityNotFoundError
    |
    +-- AuthorizationError (403)
    |   +-- RoleNotPermittedError
    |   +-- OfficeScopeError
    |
    +-- StateConflictError (400)
    |   +-- InvalidTransitionError
    |   +-- StaleStateError
    |   +-- OpenOperationExistsError
    |   +-- ItemUnavailableError
    |   +-- StatusNotAllowedError
    |
    +-- DependencyUnmetError (400)
    |   +-- MissingDocumentError
    |   +-- ApprovalRequiredError
    |
    +-- InfrastructureError (500)
    |   +-- StoreNotConfiguredError
    |
    +-- ConfigurationError (500)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_INPUT               | Missing/malformed request field
                | REFERENCE_MISMATCH          | Referenced entities disagree
                | CATEGORY_SCOPE_VIOLATION    | LAB_ONLY item into non-lab office
----------------|-----------------------------|-----------------------------------------
Not found       | ENTITY_NOT_FOUND            | Item/workflow/document absent
----------------|-----------------------------|-----------------------------------------
Authorization   | ROLE_NOT_PERMITTED          | Actor role cannot perform action
                | OFFICE_SCOPE_VIOLATION      | Actor office does not cover entity
----------------|-----------------------------|-----------------------------------------
State conflict  | INVALID_TRANSITION          | Transition not in the status table
                | STALE_STATE                 | Conditional update matched zero rows
                | OPEN_OPERATION_EXISTS       | Item already owned by an open operation
                | ITEM_UNAVAILABLE            | Item inactive/assigned/wrong holder
                | STATUS_NOT_ALLOWED          | Operation refused in current status
----------------|-----------------------------|-----------------------------------------
Dependency      | MISSING_DOCUMENT            | Required signed document absent
                | APPROVAL_REQUIRED           | Register status needs approval
----------------|-----------------------------|-----------------------------------------
Infrastructure  | STORE_NOT_CONFIGURED        | Head office store missing
                | CONFIGURATION_ERROR         | Settings file invalid
"""


class CustodyKernelError(Exception):
    """
    Base exception for all custody kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and an `http_status` for the request boundary.
    """

    code: str = "CUSTODY_KERNEL_ERROR"
    http_status: int = 500


# Validation


class ValidationError(CustodyKernelError):
    """Base exception for malformed input or mismatched references."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400


class InvalidInputError(ValidationError):
    """A request field is missing or malformed."""

    code: str = "INVALID_INPUT"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ReferenceMismatchError(ValidationError):
    """Two referenced entities do not agree (office, catalog asset, line)."""

    code: str = "REFERENCE_MISMATCH"

    def __init__(self, message: str, rule: str):
        self.rule = rule
        super().__init__(message)


class CategoryScopeError(ValidationError):
    """An item's category scope forbids the target office."""

    code: str = "CATEGORY_SCOPE_VIOLATION"

    def __init__(
        self,
        item_id: str,
        office_id: str,
        scope: str,
        allowed_office_types: tuple[str, ...],
    ):
        self.item_id = item_id
        self.office_id = office_id
        self.scope = scope
        self.allowed_office_types = allowed_office_types
        super().__init__(
            f"{scope} category assets can only be used in "
            f"{'/'.join(allowed_office_types)} offices."
        )


# Not found


class NotFoundError(CustodyKernelError):
    """Base exception for absent entities."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class EntityNotFoundError(NotFoundError):
    """Entity with given ID was not found."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Authorization


class AuthorizationError(CustodyKernelError):
    """Base exception for role or office-scope mismatches."""

    code: str = "AUTHORIZATION_ERROR"
    http_status: int = 403


class RoleNotPermittedError(AuthorizationError):
    """The actor's role cannot perform the requested action."""

    code: str = "ROLE_NOT_PERMITTED"

    def __init__(self, action: str, role: str):
        self.action = action
        self.role = role
        super().__init__(f"Role {role} is not permitted to {action}")


class OfficeScopeError(AuthorizationError):
    """The actor's office does not cover the entity."""

    code: str = "OFFICE_SCOPE_VIOLATION"

    def __init__(self, action: str, office_id: str | None):
        self.action = action
        self.office_id = office_id
        super().__init__(f"Access restricted to assigned office: cannot {action}")


# State conflicts


class StateConflictError(CustodyKernelError):
    """Base exception for transitions that the current state does not permit."""

    code: str = "STATE_CONFLICT"
    http_status: int = 400


class InvalidTransitionError(StateConflictError):
    """Transition not present in the entity's status table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, from_state: str, to_state: str):
        self.entity_type = entity_type
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid status transition from {from_state} to {to_state}")


class StaleStateError(StateConflictError):
    """A conditional update matched zero rows: another writer got there first."""

    code: str = "STALE_STATE"

    def __init__(self, entity_type: str, entity_id: str, expected_state: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_state = expected_state
        super().__init__(f"{entity_type} is no longer in {expected_state} state")


class OpenOperationExistsError(StateConflictError):
    """The item is already owned by an open assignment, transfer or return batch."""

    code: str = "OPEN_OPERATION_EXISTS"

    def __init__(self, item_id: str, operation: str, operation_id: str | None = None):
        self.item_id = item_id
        self.operation = operation
        self.operation_id = operation_id
        super().__init__(f"Item {item_id} already has an open {operation}")


class ItemUnavailableError(StateConflictError):
    """The item's custody fields do not allow the operation."""

    code: str = "ITEM_UNAVAILABLE"

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Item {item_id} is unavailable: {reason}")


class StatusNotAllowedError(StateConflictError):
    """An operation that is not a status transition is refused in the current status."""

    code: str = "STATUS_NOT_ALLOWED"

    def __init__(self, entity_type: str, operation: str, status: str, allowed: tuple[str, ...] = ()):
        self.entity_type = entity_type
        self.operation = operation
        self.status = status
        self.allowed = allowed
        detail = f" (allowed in {', '.join(allowed)})" if allowed else ""
        super().__init__(f"{entity_type} {operation} is not allowed in {status} state{detail}")


# Unmet dependencies


class DependencyUnmetError(CustodyKernelError):
    """Base exception for missing signed paperwork or approvals."""

    code: str = "DEPENDENCY_UNMET"
    http_status: int = 400


class MissingDocumentError(DependencyUnmetError):
    """A required signed document is absent or not in the required kind/status."""

    code: str = "MISSING_DOCUMENT"

    def __init__(self, required_kind: str, reason: str, document_id: str | None = None):
        self.required_kind = required_kind
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Required {required_kind} document missing: {reason}")


class ApprovalRequiredError(DependencyUnmetError):
    """A register entry must be approved before the target status."""

    code: str = "APPROVAL_REQUIRED"

    def __init__(self, entry_id: str, target_status: str):
        self.entry_id = entry_id
        self.target_status = target_status
        super().__init__(f"Approval required before moving to {target_status}")


# Infrastructure


class InfrastructureError(CustodyKernelError):
    """Base exception for storage and environment failures."""

    code: str = "INFRASTRUCTURE_ERROR"
    http_status: int = 500


class StoreNotConfiguredError(InfrastructureError):
    """The central waypoint store is not present in the database."""

    code: str = "STORE_NOT_CONFIGURED"

    def __init__(self, store_code: str):
        self.store_code = store_code
        super().__init__(f"Head office store {store_code} is not configured")


class ConfigurationError(CustodyKernelError):
    """Settings could not be loaded or failed validation."""

    code: str = "CONFIGURATION_ERROR"
    http_status: int = 500

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)
