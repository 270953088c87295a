"""EmailProvider protocol: services depend on this, not the concrete implementation."""

from typing import Protocol


class EmailProvider(Protocol):
    async def send_verification(self, email: str, name: str, token: str) -> bool: ...

    async def send_reset(self, email: str, name: str, token: str) -> bool: ...

    async def check_configuration(self) -> bool: ...
