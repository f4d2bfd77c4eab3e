#!/usr/bin/env python3
"""
Create the custody tables and the head office store row.

Every transfer passes through the store named by ``head_office_store_code``;
transfers fail with STORE_NOT_CONFIGURED until this row exists.  Running the
script again is harmless: an existing store is left as it is.

Usage:
    python3 scripts/seed_store.py
    python3 scripts/seed_store.py --config config/custody.yaml --name "Head Office Store"
    CUSTODY_DATABASE_URL=sqlite:///custody.db python3 scripts/seed_store.py
"""

import argparse
import sys

from sqlalchemy import select

from custody_config import load_settings
from custody_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from custody_kernel.logging_config import configure_logging, get_logger
from custody_kernel.models.reference import StoreModel

logger = get_logger("scripts.seed_store")


def seed_store(session, code: str, name: str) -> tuple[StoreModel, bool]:
    """The store with ``code``, created when missing; second value tells which."""
    store = session.execute(select(StoreModel).where(StoreModel.code == code)).scalar_one_or_none()
    if store is not None:
        return store, False
    store = StoreModel(code=code, name=name, is_active=True)
    session.add(store)
    session.flush()
    return store, True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create tables and the head office store.")
    parser.add_argument("--config", help="settings YAML (defaults to CUSTODY_CONFIG or packaged defaults)")
    parser.add_argument("--name", default="Head Office Store", help="display name for a new store")
    parser.add_argument("--skip-tables", action="store_true", help="do not create missing tables")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(settings.database.url, echo=settings.database.echo)
    if not args.skip_tables:
        create_tables(engine)

    with session_scope() as session:
        store, created = seed_store(session, settings.head_office_store_code, args.name)
        store_id, code = store.id, store.code

    logger.info("store_seeded", extra={"store_id": str(store_id), "code": code, "created": created})
    state = "created" if created else "already present"
    print(f"Store {code} ({store_id}) {state}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
