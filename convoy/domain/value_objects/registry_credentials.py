"""
Registry Credentials Value Object

Short-lived login for a container registry, decoded from an ECR
authorization token.
"""

import base64
from dataclasses import dataclass


@dataclass(frozen=True)
class RegistryCredentials:
    username: str
    password: str
    endpoint: str = ""

    def __repr__(self) -> str:
        return f"RegistryCredentials(username={self.username!r}, endpoint={self.endpoint!r})"

    @staticmethod
    def from_token(token: str, endpoint: str = "") -> "RegistryCredentials":
        """Decodes a base64 'user:password' authorization token."""
        decoded = base64.b64decode(token).decode("utf-8")
        username, sep, password = decoded.partition(":")
        if not sep or not password:
            raise ValueError("Malformed registry authorization token")
        return RegistryCredentials(username=username, password=password, endpoint=endpoint)
