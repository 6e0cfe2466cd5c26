"""
Tests for the Alembic migrations.

Each test migrates a scratch SQLite file to head, so the schema the
migrations build is checked against what the models expect.
"""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session

from override_engine.errors import ConflictError
from override_engine.models.enums import OverrideActionType, OverrideStatus
from override_engine.models.override import AdminOverride
from override_engine.services.override_store import OverrideStore

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


@pytest.fixture
def migrated_engine(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", url)
    command.upgrade(config, "head")

    engine = create_engine(url)
    yield engine
    engine.dispose()


def active_override(action_type):
    return AdminOverride(
        target_user_id="d1",
        admin_actor_id="admin-1",
        action_type=action_type,
        override_reason="migrated schema check",
        status=OverrideStatus.ACTIVE,
    )


def test_upgrade_creates_both_tables(migrated_engine):
    tables = set(inspect(migrated_engine).get_table_names())
    assert {"admin_overrides", "override_audit_log"} <= tables


def test_upgrade_creates_conflict_group_index(migrated_engine):
    columns = {c["name"] for c in inspect(migrated_engine).get_columns("admin_overrides")}
    indexes = {i["name"]: i for i in inspect(migrated_engine).get_indexes("admin_overrides")}

    assert "conflict_key" in columns
    index = indexes["uq_admin_overrides_active_target_conflict"]
    assert index["unique"]
    assert index["column_names"] == ["target_user_id", "conflict_key"]


def test_migrated_schema_rejects_stacked_driver_online_overrides(migrated_engine):
    with Session(migrated_engine) as db:
        store = OverrideStore(db)
        store.reserve(active_override(OverrideActionType.ENABLE_DRIVER_ONLINE))

        with pytest.raises(ConflictError):
            store.reserve(active_override(OverrideActionType.DISABLE_DRIVER_ONLINE))
        db.rollback()


def test_migrated_schema_allows_unrelated_actions(migrated_engine):
    with Session(migrated_engine) as db:
        store = OverrideStore(db)
        store.reserve(active_override(OverrideActionType.ENABLE_DRIVER_ONLINE))
        store.reserve(active_override(OverrideActionType.RESTORE_DRIVER_ACCESS))
        db.commit()

        assert len(store.list_for_target("d1")) == 2
