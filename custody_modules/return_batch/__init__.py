"""
Return Batch Module (``custody_modules.return_batch``).

Responsibility
--------------
Bulk return of some or all items assigned to one employee in one office,
closed by one combined receipt.

Invariants enforced
-------------------
* Receipt is all-or-nothing: if any line's assignment or item no longer
  matches, no line is closed.
* While a batch is open it owns its lines' assignments; those assignments
  cannot be returned, retired or put into a second batch separately.

Audit relevance
---------------
``RETURN_REQUEST_*`` audit actions; one RETURN register entry per batch.
"""

from custody_modules.return_batch.models import ReturnBatch, ReturnBatchLine, ReturnBatchStatus
from custody_modules.return_batch.workflows import RETURN_BATCH_WORKFLOW

__all__ = [
    "RETURN_BATCH_WORKFLOW",
    "ReturnBatch",
    "ReturnBatchLine",
    "ReturnBatchStatus",
]
