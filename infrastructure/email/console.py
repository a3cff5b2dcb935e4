"""Development EmailProvider that logs links instead of sending mail.

Selected automatically when no ZeptoMail API token is configured. Only the
most recent ``keep`` messages are held in ``outbox``.
"""

from collections import deque
from typing import Any

from infrastructure.email.protocol import EmailKind
from shared.logging import get_logger

log = get_logger(__name__)


class ConsoleEmailProvider:
    def __init__(self, keep: int = 50) -> None:
        self.outbox: deque[tuple[EmailKind, str, dict[str, Any]]] = deque(maxlen=keep)

    async def send(
        self, kind: EmailKind, to_email: str, template_data: dict[str, Any]
    ) -> bool:
        self.outbox.append((kind, to_email, dict(template_data)))
        # "link" is not a redacted key, so the URL shows up in dev logs
        log.info(
            "email_logged_to_console",
            kind=kind.value,
            to_email=to_email,
            link=template_data.get("link"),
        )
        return True
