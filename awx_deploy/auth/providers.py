# =============================================================================
# Authentication Providers
# =============================================================================
# Operator authentication. The authenticated username is the audit actor.
# =============================================================================

import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

UNKNOWN_OPERATOR = "Unknown operator"


@dataclass
class AuthenticatedUser:
    """An authenticated operator."""

    username: str
    display_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.display_name is None:
            self.display_name = self.username

    @property
    def actor(self) -> str:
        """Identity written to the audit trail."""
        return self.username or UNKNOWN_OPERATOR


class AuthProvider(ABC):
    """Abstract authentication provider interface."""

    @abstractmethod
    def authenticate(self, credentials: dict) -> Optional[AuthenticatedUser]:
        """
        Authenticate an operator.

        Returns:
            AuthenticatedUser if authentication succeeds, None otherwise.
        """
        ...


class BasicAuthProvider(AuthProvider):
    """HTTP Basic Authentication against a fixed set of operator accounts."""

    def __init__(self, accounts: dict[str, str]) -> None:
        """
        Args:
            accounts: Mapping of username to password
        """
        self._accounts = dict(accounts)

    def authenticate(self, credentials: dict) -> Optional[AuthenticatedUser]:
        """
        Authenticate using HTTP Basic Auth credentials.

        Args:
            credentials: Dict with 'username' and 'password' keys.
        """
        username = credentials.get("username", "")
        password = credentials.get("password", "")
        if not username or not password:
            return None

        # Compare against every account so timing does not reveal which
        # usernames exist.
        matched: Optional[str] = None
        for known_user, known_password in self._accounts.items():
            user_ok = secrets.compare_digest(username, known_user)
            password_ok = secrets.compare_digest(password, known_password)
            if user_ok and password_ok:
                matched = known_user

        if matched is None:
            return None
        return AuthenticatedUser(username=matched)
