"""
Assignment Module (``custody_modules.assignment``).

Responsibility
--------------
Single-item custody handoff to one employee or one room: draft from an
approved requisition line, issue on a signed handover slip, return on a
signed return slip, reassign after return, retire.

Architecture position
---------------------
**Modules layer** -- status flow as data in ``workflows.py``; the
``AssignmentService`` facade owns the transaction and delegates item
custody writes to ``custody_kernel.services.ItemRegistry``.

Invariants enforced
-------------------
* At most one open operation per item, re-checked inside the creating
  transaction (``custody_modules.open_operations``).
* Every status write is conditional on the status the caller read.
* Issue and Return write the assignment, the item, the register entry and
  the audit row together or not at all.

Failure modes
-------------
* 404 -- unknown item, requisition, requisition line, assignment, employee.
* 400 -- precondition, transition, race (``StaleStateError``), document gap.
* 403 -- role or office scope.

Audit relevance
---------------
``ASSIGN_*`` audit actions on every transition; ISSUE and RETURN register
entries carry reference numbers for the office's handover register.
"""

from custody_modules.assignment.models import (
    OPEN_ASSIGNMENT_STATUSES,
    Assignment,
    AssignmentStatus,
)
from custody_modules.assignment.workflows import ASSIGNMENT_WORKFLOW

__all__ = [
    "ASSIGNMENT_WORKFLOW",
    "Assignment",
    "AssignmentStatus",
    "OPEN_ASSIGNMENT_STATUSES",
]
