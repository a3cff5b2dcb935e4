"""ZeptoMail implementation of EmailProvider.

- async httpx via HttpClient
- Jinja2 templates under templates/emails/, one html + txt pair per EmailKind
- returns False on any delivery problem; retrying is RetryingEmailProvider's job
"""

import os
from typing import Any, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.email.protocol import EmailKind
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)

_SUBJECTS = {
    EmailKind.VERIFICATION: "Verify your email address",
    EmailKind.EMAIL_CHANGE: "Confirm your new email address",
    EmailKind.PASSWORD_RESET: "Reset your password",
}


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "Telo Directory",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(self, kind: EmailKind, template_data: dict[str, Any]) -> tuple[str, str, str]:
        """Return (subject, html_body, text_body) for *kind*."""
        context = {"app_name": self._app_name, **template_data}
        html_body = self._jinja.get_template(f"{kind.value}.html").render(**context)
        text_body = self._jinja.get_template(f"{kind.value}.txt").render(**context)
        return f"{_SUBJECTS[kind]} - {self._app_name}", html_body, text_body

    async def send(
        self, kind: EmailKind, to_email: str, template_data: dict[str, Any]
    ) -> bool:
        subject, html_body, text_body = self.render(kind, template_data)
        return await self._send(
            to_email, template_data.get("name"), subject, html_body, text_body
        )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
            "textbody": text_body,
        }

        api_key = self._settings.zepto_api_token
        if not api_key.startswith("Zoho-enczapikey "):
            api_key = f"Zoho-enczapikey {api_key}"

        headers = {"Authorization": api_key, "Content-Type": "application/json"}

        try:
            response = await self._http.post(_ZEPTO_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=to_email, subject=subject)
            return True
        log.error(
            "email_sent_failed",
            to_email=to_email,
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False
