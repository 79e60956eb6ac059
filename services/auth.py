"""Credential check for the admin console."""

from __future__ import annotations

import secrets
from typing import Optional

from loguru import logger


class CredentialAuthenticator:
    """Compares submitted credentials with the configured admin account.

    No password configured means every login is refused.
    """

    def __init__(self, username: str, password: Optional[str]) -> None:
        self._username = username
        self._password = password

    def verify(self, username: str, password: str) -> bool:
        if not self._password:
            return False
        user_ok = secrets.compare_digest(username.encode("utf-8"), self._username.encode("utf-8"))
        password_ok = secrets.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        if not (user_ok and password_ok):
            logger.info("Rejected admin login", username=username)
            return False
        return True
