"""
Module ORM Registry (``custody_modules._orm_registry``).

Responsibility
--------------
Imports every ORM model so that ``Base.metadata`` knows every table before
``create_all`` / ``drop_all`` runs.  ``custody_kernel.db.engine`` calls
``import_all_orm_models()`` from ``create_tables`` and ``drop_tables``.

Architecture position
---------------------
**Modules layer** -- imported lazily from the kernel engine, so the kernel
keeps no import-time dependency on the modules.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every module's ``orm`` module."""
    # fmt: off
    import custody_kernel.models  # noqa: F401
    import custody_modules.assignment.orm  # noqa: F401
    import custody_modules.transfer.orm  # noqa: F401
    import custody_modules.return_batch.orm  # noqa: F401
    # fmt: on
