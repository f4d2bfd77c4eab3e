"""
Custody Modules.

Workflow services over the custody kernel.  Each module contains:
- Domain models (the nouns and their status enums)
- ORM models (persistence)
- Workflows (status flow tables as data)
- A service that owns the transaction for every operation

Modules:
- Assignment: single-item handoff to an employee or a room
- Transfer: multi-item move between two offices through the head office store
- Return batch: bulk return of an employee's assigned items in one office

Cross-module exclusion on an item (one open operation at a time) lives in
``open_operations``.
"""

from custody_modules import assignment, return_batch, transfer

__all__ = [
    "assignment",
    "return_batch",
    "transfer",
]
