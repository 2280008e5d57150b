"""Scope-text enhancement: the one fallible sub-step of draft generation."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol

import httpx

DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_MAX_RETRIES = 1


class ScopeEnhancementError(Exception):
    """Enhancement could not produce a usable scope."""

    def __init__(self, message: str, *, code: str = "ENHANCE_FAILED") -> None:
        super().__init__(message)
        self.code = code


@dataclass(slots=True)
class ScopeEnhanceRequest:
    job_type_name: str
    base_scope: list[str]
    client_name: str | None = None
    address: str | None = None
    job_notes: str | None = None

    def validate(self) -> None:
        if not self.job_type_name.strip():
            raise ScopeEnhancementError("Job type name is required", code="INVALID_INPUT")
        if not self.base_scope:
            raise ScopeEnhancementError(
                "Base scope must be a non-empty list",
                code="INVALID_INPUT",
            )


class ScopeEnhancer(Protocol):
    """Protocol implemented by scope enhancement backends."""

    def enhance(self, request: ScopeEnhanceRequest) -> list[str]:
        """Return rewritten scope lines or raise ``ScopeEnhancementError``."""


class UnconfiguredScopeEnhancer:
    """Used when no enhancement endpoint is configured; drafts fall back to baseline scope."""

    def enhance(self, request: ScopeEnhanceRequest) -> list[str]:
        raise ScopeEnhancementError(
            "Scope enhancement endpoint is not configured",
            code="NOT_CONFIGURED",
        )


class HttpScopeEnhancer:
    """Posts the baseline scope to an HTTP endpoint that returns rewritten lines.

    The endpoint receives the request fields as JSON and must answer with either
    a JSON array of strings or an object with an ``enhanced_scope`` array.
    """

    def __init__(
        self,
        *,
        endpoint_url: str,
        api_key: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers=headers,
            transport=transport or httpx.HTTPTransport(retries=max_retries),
        )

    def enhance(self, request: ScopeEnhanceRequest) -> list[str]:
        request.validate()
        try:
            response = self._client.post(self.endpoint_url, json=asdict(request))
        except httpx.TimeoutException as error:
            raise ScopeEnhancementError("Scope enhancement timed out", code="TIMEOUT") from error
        except httpx.HTTPError as error:
            raise ScopeEnhancementError(
                f"Scope enhancement request failed: {error}",
                code="HTTP_ERROR",
            ) from error

        if not response.is_success:
            raise ScopeEnhancementError(
                f"Scope enhancement returned HTTP {response.status_code}",
                code="HTTP_STATUS",
            )
        try:
            body = response.json()
        except ValueError as error:
            raise ScopeEnhancementError(
                "Scope enhancement returned invalid JSON",
                code="PARSE_ERROR",
            ) from error
        return _parse_enhanced_scope(body)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpScopeEnhancer:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _parse_enhanced_scope(body: Any) -> list[str]:
    items = body.get("enhanced_scope") if isinstance(body, dict) else body
    if not isinstance(items, list):
        raise ScopeEnhancementError("Scope enhancement response is not a list", code="PARSE_ERROR")
    lines = [item.strip() for item in items if isinstance(item, str) and item.strip()]
    if not lines:
        raise ScopeEnhancementError("Scope enhancement returned no scope lines", code="EMPTY")
    return lines
