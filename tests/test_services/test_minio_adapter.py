"""Tests for the MinIO adapter."""

import pytest

from svcadm.errors import ExecFailed
from svcadm.models.runtime import ContainerRunSpec


def running_minio(fake_engine, env):
    fake_engine.containers["svcadm-minio"] = {
        "status": "running",
        "spec": ContainerRunSpec(name="svcadm-minio", image="minio:latest", env=env),
    }


@pytest.mark.asyncio
class TestMinioAdapter:
    """Test minio setup through mc."""

    async def test_pre_init_defaults(self, make_context, svc):
        """Test generated root credentials and console settings."""
        artifacts = await make_context([svc("minio")]).adapter("minio").pre_init()
        assert artifacts.env["MINIO_ROOT_USER"] == "svcadm"
        assert len(artifacts.env["MINIO_ROOT_PASSWORD"]) == 32
        assert artifacts.env["MINIO_CONSOLE_ADDRESS"] == ":9001"
        assert "MINIO_BROWSER_REDIRECT_URL" not in artifacts.env
        assert artifacts.volumes == {"minio-data": "/data"}
        assert artifacts.command == ["server", "/data"]

    async def test_pre_init_keeps_declared_credentials(self, make_context, svc):
        """Test declared root credentials are kept."""
        ctx = make_context([
            svc("minio", proxy=True, container={
                "name": "svcadm-minio",
                "env": {"MINIO_ROOT_USER": "root", "MINIO_ROOT_PASSWORD": "rootpass"},
            }),
            svc("nginx"),
        ])
        env = (await ctx.adapter("minio").pre_init()).env
        assert env["MINIO_ROOT_USER"] == "root"
        assert env["MINIO_ROOT_PASSWORD"] == "rootpass"
        assert env["MINIO_BROWSER_REDIRECT_URL"] == "https://dev.local/minio/"

    async def test_post_init(self, make_context, svc, fake_engine, no_sleep):
        """Test the alias is reset and users get their policies."""
        running_minio(fake_engine, {"MINIO_ROOT_USER": "svcadm", "MINIO_ROOT_PASSWORD": "s3cret"})

        def handler(name, argv):
            if argv[:3] == ["mc", "alias", "remove"] and argv[3] == "play":
                raise ExecFailed(name, argv, 1, stderr="no such alias")
            return b""

        fake_engine.exec_handler = handler
        await make_context([svc("minio")]).adapter("minio").post_init()

        argvs = fake_engine.argvs("svcadm-minio")
        assert argvs[0] == ["sh", "-c", "MC_HOST_local=http://localhost:9000 mc ready local"]
        assert [argv[3] for argv in argvs if argv[:3] == ["mc", "alias", "remove"]] == ["local", "gcs", "s3", "play"]
        assert ["mc", "alias", "set", "svcadm-minio", "http://localhost:9000", "svcadm", "s3cret"] in argvs
        assert ["mc", "admin", "policy", "attach", "svcadm-minio", "consoleAdmin", "--user", "adm"] in argvs
        assert ["mc", "admin", "policy", "attach", "svcadm-minio", "readwrite", "--user", "dev"] in argvs

    async def test_buckets(self, make_context, svc, fake_engine):
        """Test bucket create and delete commands."""
        adapter = make_context([svc("minio")]).adapter("minio")
        await adapter.create_bucket("artifacts")
        await adapter.delete_bucket("artifacts")
        assert fake_engine.argvs() == [
            ["mc", "mb", "svcadm-minio/artifacts"],
            ["mc", "rb", "svcadm-minio/artifacts", "--force"],
        ]

    async def test_backup(self, make_context, svc, fake_engine, tmp_path):
        """Test the data directory is archived and copied out."""
        adapter = make_context([svc("minio")]).adapter("minio")
        written = await adapter.backup(str(tmp_path))

        tar, rm = fake_engine.argvs()
        assert tar[:2] == ["tar", "-cJf"] and tar[-1] == "/data"
        assert rm == ["rm", "-f", tar[2]]
        assert written == [tmp_path / tar[2].rsplit("/", 1)[1]]

    async def test_cleanup(self, make_context, svc):
        """Test cleanup reports the data volume."""
        assert make_context([svc("minio")]).adapter("minio").cleanup() == (["minio-data"], [])
