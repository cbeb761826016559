"""Tests for the PostgreSQL adapter."""

import stat

import pytest

from svcadm.errors import ExecFailed, ReadinessTimeout
from svcadm.models.users import User
from svcadm.services.postgresql import quote_identifier, quote_literal


def sql_of(fake_engine):
    return [argv[-1] for argv in fake_engine.argvs("svcadm-postgresql") if argv[0] == "psql"]


class TestQuoting:
    def test_identifier(self):
        """Test identifier quoting."""
        assert quote_identifier("gitlab") == '"gitlab"'
        with pytest.raises(ValueError):
            quote_identifier('x"; DROP TABLE users; --')

    def test_literal(self):
        """Test literal quoting."""
        assert quote_literal("it's") == "'it''s'"


@pytest.mark.asyncio
class TestPostgresAdapter:
    """Test the postgres adapter against the fake engine."""

    async def test_pre_init(self, make_context, svc):
        """Test the generated superuser password and port."""
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        artifacts = await adapter.pre_init()
        assert len(artifacts.env["POSTGRES_PASSWORD"]) == 32
        assert artifacts.ports == {5432: 5432}

    async def test_superuser_from_env(self, make_context, svc):
        """Test the superuser name comes from POSTGRES_USER."""
        ctx = make_context([svc("postgresql", container={"name": "pg", "env": {"POSTGRES_USER": "root"}})])
        assert ctx.adapter("postgresql").superuser == "root"

    async def test_psql_argv(self, make_context, svc, fake_engine):
        """Test the psql command line."""
        fake_engine.exec_handler = lambda name, argv: b" 1 \n"
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        assert await adapter.psql("SELECT 1;", database="gitlab") == "1"
        assert fake_engine.argvs() == [[
            "psql", "-U", "postgres", "-d", "gitlab", "-v", "ON_ERROR_STOP=1", "-tA", "-c", "SELECT 1;",
        ]]

    async def test_users(self, make_context, svc, fake_engine):
        """Test admins become superusers."""
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        failed = await adapter.create_users()

        assert failed == []
        assert sql_of(fake_engine) == [
            "CREATE USER \"adm\" WITH PASSWORD 'hunter22' SUPERUSER;",
            "CREATE USER \"dev\" WITH PASSWORD 'devpass1';",
        ]

    async def test_ensure_role_resets_existing(self, make_context, svc, fake_engine):
        """Test an existing role has its password reset."""
        fake_engine.exec_handler = lambda name, argv: b"1" if "pg_roles" in argv[-1] else b""
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        await adapter.ensure_role("gitlab", "s3cret")
        assert sql_of(fake_engine)[-1] == "ALTER ROLE \"gitlab\" WITH LOGIN PASSWORD 's3cret';"

    async def test_create_database_is_idempotent(self, make_context, svc, fake_engine):
        """Test an existing database is not created again."""
        fake_engine.exec_handler = lambda name, argv: b"1" if "pg_database" in argv[-1] else b""
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        await adapter.create_database("gitlab", "gitlab")
        assert not any(s.startswith("CREATE DATABASE") for s in sql_of(fake_engine))

    async def test_backup_database(self, make_context, svc, fake_engine, tmp_path):
        """Test a database dump is written privately under a timestamped name."""
        fake_engine.exec_handler = lambda name, argv: b"-- gitlab dump" if argv[0] == "pg_dump" else b""
        adapter = make_context([svc("postgresql")]).adapter("postgresql")

        path = await adapter.backup_database("gitlab", str(tmp_path / "out"), "2024-05-01-10-00-00")
        assert path == tmp_path / "out" / "gitlab_2024-05-01-10-00-00.sql"
        assert path.read_text() == "-- gitlab dump"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert ["pg_dump", "-U", "postgres", "gitlab"] in fake_engine.argvs()

    async def test_wait_for_times_out(self, make_context, svc, fake_engine, no_sleep):
        """Test readiness gives up after the retry budget."""
        def refuse(name, argv):
            raise ExecFailed(name, argv, 2, stderr="no response")

        fake_engine.exec_handler = refuse
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        with pytest.raises(ReadinessTimeout):
            await adapter.wait_for()
        assert len(fake_engine.execs) == adapter.max_retries
        assert fake_engine.argvs()[0][:3] == ["pg_isready", "-h", "localhost"]

    async def test_failed_user_does_not_stop_the_others(self, make_context, svc, fake_engine):
        """Test one failing user does not stop the rest."""
        def handler(name, argv):
            if '"adm"' in argv[-1]:
                raise ExecFailed(name, argv, 1, stderr="role exists")
            return b""

        fake_engine.exec_handler = handler
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        assert await adapter.create_users() == ["adm"]
        assert any('"dev"' in s for s in sql_of(fake_engine))

    async def test_create_user_model(self, make_context, svc, fake_engine):
        """Test quotes in passwords are escaped."""
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        await adapter.create_user(User(username="o_brien", password="pa'ss123"))
        assert sql_of(fake_engine) == ["CREATE USER \"o_brien\" WITH PASSWORD 'pa''ss123';"]

    async def test_delete_database_and_user(self, make_context, svc, fake_engine):
        """Test dropping a database and its owner."""
        adapter = make_context([svc("postgresql")]).adapter("postgresql")
        await adapter.delete_database("gitlab")
        await adapter.delete_user("gitlab")
        assert sql_of(fake_engine) == ['DROP DATABASE "gitlab";', 'DROP USER "gitlab";']
