"""Tests for user models."""

import pytest
from pydantic import ValidationError

from svcadm.models.users import User, UserSet


@pytest.mark.parametrize("username", ["abc", "a" * 20, "dev_ops-1"])
def test_username_accepted(username):
    """Test usernames on the length boundaries."""
    assert User(username=username, password="secret1").username == username


@pytest.mark.parametrize("username", ["ab", "a" * 21, "bad name", "bad.name"])
def test_username_rejected(username):
    """Test invalid usernames."""
    with pytest.raises(ValidationError):
        User(username=username, password="secret1")


@pytest.mark.parametrize("password", ["a" * 6, "a" * 32, "with inner space"])
def test_password_accepted(password):
    """Test passwords on the length boundaries."""
    assert User(username="adm", password=password).password == password


@pytest.mark.parametrize("password", ["a" * 5, "a" * 33, " leading", "trailing "])
def test_password_rejected(password):
    """Test invalid passwords."""
    with pytest.raises(ValidationError):
        User(username="adm", password=password)


def test_user_set_length():
    """Test the user set counts admins and users."""
    users = UserSet.model_validate({
        "admins": [{"username": "adm", "password": "hunter22"}],
        "users": [{"username": "dev", "password": "devpass1"}, {"username": "qa1", "password": "qapass1"}],
    })
    assert len(users) == 3
    assert users.admins[0].email == ""
