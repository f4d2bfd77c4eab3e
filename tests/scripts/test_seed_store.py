"""scripts/seed_store.py: tables plus an idempotent head office store row."""

import importlib.util
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from custody_config.loader import ENV_CONFIG_PATH, ENV_DATABASE_URL
from custody_kernel.db.engine import reset_engine
from custody_kernel.models.reference import StoreModel

SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "seed_store.py"


@pytest.fixture
def seed_module():
    spec = importlib.util.spec_from_file_location("seed_store", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_CONFIG_PATH, raising=False)
    monkeypatch.delenv(ENV_DATABASE_URL, raising=False)
    url = f"sqlite:///{tmp_path / 'seed.db'}"
    path = tmp_path / "custody.yaml"
    path.write_text(
        f"database:\n  url: {url}\ntransfers:\n  head_office_store_code: MAIN_STORE\n"
    )
    yield path, url
    reset_engine()


def _stores(url: str) -> list[tuple[str, str]]:
    engine = create_engine(url)
    try:
        with Session(engine) as s:
            return [(row.code, row.name) for row in s.execute(select(StoreModel)).scalars()]
    finally:
        engine.dispose()


class TestSeedStore:

    def test_creates_tables_and_store(self, seed_module, config_file, capsys):
        path, url = config_file
        assert seed_module.main(["--config", str(path), "--name", "Main Store"]) == 0
        assert _stores(url) == [("MAIN_STORE", "Main Store")]
        assert "created" in capsys.readouterr().out

    def test_second_run_leaves_store_alone(self, seed_module, config_file, capsys):
        path, url = config_file
        seed_module.main(["--config", str(path), "--name", "Main Store"])
        capsys.readouterr()
        seed_module.main(["--config", str(path), "--name", "Renamed"])
        assert _stores(url) == [("MAIN_STORE", "Main Store")]
        assert "already present" in capsys.readouterr().out

    def test_seed_store_helper_reports_existing(self, seed_module, session):
        store, created = seed_module.seed_store(session, "HEAD_OFFICE_STORE", "Head Office Store")
        assert created is True
        again, created_again = seed_module.seed_store(session, "HEAD_OFFICE_STORE", "Other")
        assert again.id == store.id
        assert created_again is False
        count = session.execute(select(func.count()).select_from(StoreModel)).scalar_one()
        assert count == 1
