"""
Transfer Module (``custody_modules.transfer``).

Responsibility
--------------
Multi-item move between two offices through the head office store:
request, approve, dispatch to store, receive at store, dispatch to
destination, receive at destination; reject or cancel with custody
rollback once items have left the source office.

Architecture position
---------------------
**Modules layer** -- ``STATUS_FLOW`` in ``workflows.py`` is the single
transition table; ``TransferService`` owns the transaction.

Invariants enforced
-------------------
* Transitions outside ``STATUS_FLOW`` fail before any permission check.
* Aborting from an in-flight status puts every line item back in the
  source office, Available and Unassigned, in the same transaction.
* Legacy single-item records read as one-line transfers; reads never
  write.

Audit relevance
---------------
``TRANSFER_*`` audit actions per stage; the TRANSFER register entry follows
the transfer to Completed, Rejected or Cancelled.
"""

from custody_modules.transfer.models import Transfer, TransferStatus
from custody_modules.transfer.workflows import STATUS_FLOW, TRANSFER_WORKFLOW

__all__ = [
    "STATUS_FLOW",
    "TRANSFER_WORKFLOW",
    "Transfer",
    "TransferStatus",
]
