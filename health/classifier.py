"""Result classifier: every core operation leaves through here.

Three outcome families:
- ok:         2xx upstream answer (or a cache hit), status and body passed through
- no_content: the provider's "no data for that date yet" signal, not an error
- error:      validation, upstream or store failure, with status and message
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from health.adapters.protocol import UpstreamResponse
from shared.config import settings
from shared.exceptions import ProblemDetailError, UpstreamError


class OutcomeKind(StrEnum):
    OK = "ok"
    NO_CONTENT = "no_content"
    ERROR = "error"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    status: int
    body: Any = None
    error: ProblemDetailError | None = None

    @classmethod
    def ok(cls, body: Any, status: int = 200) -> "Outcome":
        return cls(OutcomeKind.OK, status, body)

    @classmethod
    def no_content(cls) -> "Outcome":
        return cls(OutcomeKind.NO_CONTENT, 204)

    @classmethod
    def failed(cls, exc: ProblemDetailError) -> "Outcome":
        return cls(OutcomeKind.ERROR, exc.status, {"error": exc.detail}, exc)

    @property
    def is_ok(self) -> bool:
        return self.kind is OutcomeKind.OK


def _upstream_message(response: UpstreamResponse) -> str:
    body = response.body
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    if isinstance(body, str) and body:
        return body[:200]
    return f"ROOK API responded with HTTP {response.status}"


def is_no_content(response: UpstreamResponse) -> bool:
    return response.status == settings.no_content_status


def classify_response(response: UpstreamResponse) -> Outcome:
    if is_no_content(response):
        return Outcome.no_content()
    if response.is_success:
        return Outcome.ok(response.body, response.status)
    return Outcome.failed(
        UpstreamError(_upstream_message(response), response.status, response.body)
    )


def classify_exception(exc: ProblemDetailError) -> Outcome:
    return Outcome.failed(exc)
