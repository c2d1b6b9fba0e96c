"""
Tests for pfm_kernel.db.engine module-level engine and session scope.
"""

from uuid import uuid4

import pytest
from sqlalchemy import inspect

from pfm_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from pfm_kernel.models import UserProfile


@pytest.fixture
def module_engine():
    reset_engine()
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


class TestUninitialized:

    @pytest.mark.parametrize("accessor", [get_engine, get_session, get_session_factory])
    def test_access_before_init_raises(self, accessor):
        reset_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            accessor()


class TestSessionScope:

    def test_commits_on_success(self, module_engine):
        user_id = uuid4()
        with session_scope() as session:
            session.add(UserProfile(id=user_id, timezone="Europe/Berlin"))

        with get_session() as session:
            assert session.get(UserProfile, user_id).timezone == "Europe/Berlin"

    def test_rolls_back_on_error(self, module_engine):
        user_id = uuid4()
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(UserProfile(id=user_id, timezone="UTC"))
                session.flush()
                raise ValueError("abort")

        with get_session() as session:
            assert session.get(UserProfile, user_id) is None

    def test_factory_is_shared(self, module_engine):
        assert get_engine() is module_engine
        assert get_session_factory() is get_session_factory()


class TestLifecycle:

    def test_reinit_replaces_engine(self, module_engine):
        replacement = init_engine_from_url("sqlite://")
        assert get_engine() is replacement
        assert replacement is not module_engine

    def test_drop_tables(self, module_engine):
        drop_tables()
        assert not inspect(module_engine).has_table("recurring_templates")
