"""Generated secrets, timestamps and host identity."""

import base64
import secrets
import socket
from datetime import datetime
from typing import Optional


BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"


def generate_password(length: int = 32) -> str:
    """URL-safe random password of exactly ``length`` characters."""
    if length < 1:
        raise ValueError("password length must be at least 1")
    raw = secrets.token_bytes(length)
    return base64.urlsafe_b64encode(raw).decode("ascii")[:length]


def backup_timestamp(now: Optional[datetime] = None) -> str:
    """Timestamp used to name backups: YYYY-MM-DD-HH-MM-SS."""
    return (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)


def get_hostname() -> str:
    """Host name published by the reverse proxy."""
    return socket.gethostname()
