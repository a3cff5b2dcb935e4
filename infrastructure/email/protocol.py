"""EmailProvider protocol and the kinds of mail the service sends."""

from enum import Enum
from typing import Any, Protocol


class EmailKind(str, Enum):
    VERIFICATION = "verification"
    EMAIL_CHANGE = "email_change"
    PASSWORD_RESET = "password_reset"


class EmailProvider(Protocol):
    async def send(
        self, kind: EmailKind, to_email: str, template_data: dict[str, Any]
    ) -> bool: ...
