"""
Session Bridge Port

Architectural Intent:
- Port interface for attaching the operator's terminal to a remote session
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SessionBridgePort(Protocol):
    async def start(self, session: dict[str, Any]) -> int:
        """Bridge the session interactively. Returns the exit status."""
        ...
