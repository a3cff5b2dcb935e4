"""Retry wrapper for any EmailProvider, built on tenacity.

Makes up to ``max_attempts`` calls, waiting ``base_delay * 2**(n-1)``
seconds after the n-th failure (2s then 4s with the defaults). Both a
``False`` result and a provider exception count as a failed attempt.
Callers only see the final result: True, or False once attempts run out.
"""

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from infrastructure.email.protocol import EmailKind, EmailProvider
from shared.logging import get_logger

log = get_logger(__name__)


def _not_delivered(delivered: bool) -> bool:
    return not delivered


def _outcome_fields(retry_state: RetryCallState) -> dict[str, Any]:
    outcome = retry_state.outcome
    if outcome is not None and outcome.failed:
        error = outcome.exception()
        return {"error": str(error), "error_type": type(error).__name__}
    return {}


class RetryingEmailProvider:
    def __init__(
        self,
        inner: EmailProvider,
        *,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._inner = inner
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self._sleep = sleep

    def _retrying(self, kind: EmailKind, to_email: str) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay),
            retry=retry_if_exception_type(Exception) | retry_if_result(_not_delivered),
            sleep=self._sleep,
            before_sleep=partial(self._log_attempt, kind, to_email),
            retry_error_callback=partial(self._give_up, kind, to_email),
        )

    async def send(
        self, kind: EmailKind, to_email: str, template_data: dict[str, Any]
    ) -> bool:
        retrying = self._retrying(kind, to_email)
        return await retrying(self._inner.send, kind, to_email, template_data)

    @staticmethod
    def _log_attempt(kind: EmailKind, to_email: str, retry_state: RetryCallState) -> None:
        log.warning(
            "email_attempt_failed",
            kind=kind.value,
            to_email=to_email,
            attempt=retry_state.attempt_number,
            retry_in=retry_state.next_action.sleep if retry_state.next_action else None,
            **_outcome_fields(retry_state),
        )

    @staticmethod
    def _give_up(kind: EmailKind, to_email: str, retry_state: RetryCallState) -> bool:
        log.error(
            "email_delivery_gave_up",
            kind=kind.value,
            to_email=to_email,
            attempts=retry_state.attempt_number,
            **_outcome_fields(retry_state),
        )
        return False
