"""
Confirmation Port

Architectural Intent:
- Port interface for asking the operator a yes/no question
- Implementations serialise prompts so concurrent nodes never share the
  terminal; `details` are shown together with the question they explain
"""

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class ConfirmationPort(Protocol):
    async def confirm(
        self, question: str, default: bool = False, details: Sequence[str] = ()
    ) -> bool: ...
