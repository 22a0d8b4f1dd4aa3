"""
Unit tests for the database engine configuration.
"""

from infrastructure.database.connection import async_session_maker, connect_args_for, get_db


class TestConnectArgs:
    def test_production_requires_ssl(self):
        assert connect_args_for("production") == {"ssl": "require"}

    def test_other_environments_connect_plainly(self):
        assert connect_args_for("development") == {}
        assert connect_args_for("staging") == {}


class TestSessions:
    async def test_get_db_yields_a_session_from_the_factory(self):
        sessions = get_db()
        session = await sessions.__anext__()

        assert session.bind is async_session_maker.kw["bind"]
        assert session.autoflush is False

        await sessions.aclose()
