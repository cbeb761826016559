"""Tests for the SonarQube adapter."""

import json

import pytest

from svcadm.errors import SvcadmError
from svcadm.models.runtime import ContainerRunSpec
from svcadm.models.users import User
from svcadm.services.sonarqube import find_nested_id


USERS_PAYLOAD = {"users": [{"id": "u-1", "login": "someone"}, {"id": "u-2", "login": "adm"}]}


class TestFindNestedId:
    def test_match(self):
        """Test a matching entry id is returned."""
        assert find_nested_id(USERS_PAYLOAD, "users", "login", "adm") == "u-2"

    def test_from_json_bytes(self):
        """Test the payload may be raw JSON bytes."""
        assert find_nested_id(json.dumps(USERS_PAYLOAD).encode(), "users", "login", "someone") == "u-1"

    @pytest.mark.parametrize("payload", [
        b"not json",
        {"users": []},
        {"users": [{"login": "adm"}]},
        {"other": [{"id": "x", "login": "adm"}]},
        ["users"],
    ])
    def test_no_match(self, payload):
        """Test no match returns None."""
        assert find_nested_id(payload, "users", "login", "adm") is None


def running_sonarqube(fake_engine, password="adminpw"):
    fake_engine.containers["svcadm-sonarqube"] = {
        "status": "running",
        "spec": ContainerRunSpec(name="svcadm-sonarqube", image="sonarqube:latest",
                                 env={"ADMIN_PASSWORD": password}),
    }


@pytest.mark.asyncio
class TestSonarQubeAdapter:
    """Test the sonarqube adapter."""

    async def test_pre_init(self, make_context, svc):
        """Test JDBC settings and the web context when proxied."""
        ctx = make_context([svc("postgresql"), svc("sonarqube", proxy=True), svc("nginx")])
        adapter = ctx.adapter("sonarqube")
        env = (await adapter.pre_init()).env

        assert env["SONAR_JDBC_URL"] == "jdbc:postgresql://svcadm-postgresql:5432/sonarqube"
        assert env["SONAR_JDBC_USERNAME"] == "sonarqube"
        assert len(env["SONAR_JDBC_PASSWORD"]) == 32
        assert env["SONAR_WEB_CONTEXT"] == "/sonarqube"
        assert adapter.base_url == "http://localhost:9000/sonarqube"

    async def test_base_url_without_proxy(self, make_context, svc):
        """Test the API base without the proxy."""
        ctx = make_context([svc("postgresql"), svc("sonarqube")])
        assert ctx.adapter("sonarqube").base_url == "http://localhost:9000"

    async def test_post_init_rotates_default_password(self, make_context, svc, fake_engine, no_sleep):
        """Test post_init replaces the default admin password."""
        running_sonarqube(fake_engine)
        ctx = make_context([svc("postgresql"), svc("sonarqube")])
        adapter = ctx.adapter("sonarqube")

        replies = iter([b'{"status": "STARTING"}', b'{"status": "UP"}'])
        fake_engine.exec_handler = lambda name, argv: next(replies, b"")
        await adapter.post_init()

        change = fake_engine.argvs("svcadm-sonarqube")[2]
        assert "admin:admin" in change
        assert "password=adminpw" in change
        assert change[-1] == "http://localhost:9000/api/users/change_password"

    async def test_create_admin_user(self, make_context, svc, fake_engine):
        """Test admins are added to the administrators group."""
        running_sonarqube(fake_engine)

        def handler(name, argv):
            url = argv[-1]
            if "users-management/users?q=" in url:
                return json.dumps(USERS_PAYLOAD).encode()
            if "groups?q=" in url:
                return b'{"groups": [{"id": "g-9", "name": "sonar-administrators"}]}'
            return b""

        fake_engine.exec_handler = handler
        adapter = make_context([svc("postgresql"), svc("sonarqube")]).adapter("sonarqube")
        await adapter.create_admin_user(User(username="adm", password="hunter22"))

        membership = fake_engine.argvs()[-1]
        assert membership[-1] == "http://localhost:9000/api/v2/authorizations/group-memberships"
        assert json.loads(membership[membership.index("-d") + 1]) == {"userId": "u-2", "groupId": "g-9"}
        assert "admin:adminpw" in membership

    async def test_create_admin_user_without_group(self, make_context, svc, fake_engine):
        """Test a missing administrators group is an error."""
        running_sonarqube(fake_engine)
        fake_engine.exec_handler = lambda name, argv: json.dumps(USERS_PAYLOAD).encode()
        adapter = make_context([svc("postgresql"), svc("sonarqube")]).adapter("sonarqube")
        with pytest.raises(SvcadmError, match="sonar-administrators"):
            await adapter.create_admin_user(User(username="adm", password="hunter22"))
