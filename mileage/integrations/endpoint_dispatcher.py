"""Endpoint dispatcher — talks to the remote record-keeping service.

The backend's routing convention is not known in advance: it may serve
path-style routes (``/config``) or read the operation name from one of
three query parameters (``?action=``, ``?route=``, ``?op=``). Each call
builds an ordered list of candidate URLs and tries them one at a time,
stopping at the first transport-level success.

Writes try every candidate twice: a JSON body first, then a form body
that repeats the operation name under ``op``, ``action`` and ``route``
with the entry itself JSON-encoded in ``payload``.

Every attempt is bounded by REQUEST_TIMEOUT_SECONDS. A timeout fails the
attempt, not the call; only when every attempt has failed does the call
raise TransportError with the last underlying error attached.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel

from mileage.ports.api_port import ApplicationError, TransportError

logger = logging.getLogger(__name__)

_NO_STORE = {"Cache-Control": "no-store"}
_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"


class EndpointStyle(Enum):
    PATH = "path"
    ACTION = "action"
    ROUTE = "route"
    OP = "op"


DEFAULT_STYLES: tuple[EndpointStyle, ...] = (
    EndpointStyle.PATH,
    EndpointStyle.ACTION,
    EndpointStyle.ROUTE,
    EndpointStyle.OP,
)


@dataclass(frozen=True)
class Candidate:
    """One fully-formed request URL for a logical operation."""

    style: EndpointStyle
    url: str


@dataclass
class Success:
    value: Any


@dataclass
class Failure:
    error: BaseException | None


AttemptResult = Union[Success, Failure]


class HTTPStatusFailure(Exception):
    """A candidate answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, body: str, url: str) -> None:
        self.status_code = status_code
        detail = f" — {body}" if body else ""
        super().__init__(f"{status_code} {reason}{detail} @ {url}")


class Envelope(BaseModel):
    """Tagged result object some deployments wrap their payloads in."""

    ok: bool
    error: Any = None
    data: Any = None


# ---------------------------------------------------------------------------
# Candidate construction
# ---------------------------------------------------------------------------


def encode_query(params: dict | None) -> str:
    """URL-encode query params, dropping None values."""
    if not params:
        return ""
    return urlencode({k: v for k, v in params.items() if v is not None})


def build_candidates(
    base_url: str,
    operation: str,
    query: str = "",
    styles: tuple[EndpointStyle, ...] | list[EndpointStyle] = DEFAULT_STYLES,
) -> list[Candidate]:
    """Return one candidate per style, in the given order."""
    candidates: list[Candidate] = []
    for style in styles:
        if style is EndpointStyle.PATH:
            url = f"{base_url.rstrip('/')}/{operation}"
            if query:
                url += f"?{query}"
        else:
            url = f"{base_url}?{style.value}={quote(operation, safe='')}"
            if query:
                url += f"&{query}"
        candidates.append(Candidate(style=style, url=url))
    return candidates


def parse_body(text: str) -> Any:
    """Empty body -> None, JSON -> parsed value, anything else -> raw text."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def unwrap_envelope(operation: str, value: Any) -> Any:
    """Strip a tagged {ok, error, data} envelope; raise on a tagged failure."""
    if not (isinstance(value, dict) and isinstance(value.get("ok"), bool)):
        return value

    envelope = Envelope.model_validate(value)
    if not envelope.ok:
        message = str(envelope.error) if envelope.error is not None else ""
        raise ApplicationError(operation, message)

    if "data" in value:
        return envelope.data
    rest = {k: v for k, v in value.items() if k not in ("ok", "error")}
    return rest or None


def _styles_from_settings(names: list[str]) -> tuple[EndpointStyle, ...]:
    return tuple(EndpointStyle(name) for name in names)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class EndpointDispatcher:
    """HTTP implementation of ApiPort."""

    def __init__(
        self,
        base_url: str | None = None,
        styles: tuple[EndpointStyle, ...] | list[EndpointStyle] | None = None,
        timeout_seconds: float | None = None,
        warmup_timeout_seconds: float | None = None,
    ) -> None:
        if base_url is None or styles is None or timeout_seconds is None or warmup_timeout_seconds is None:
            from mileage.config import settings

            if base_url is None:
                base_url = settings.API_BASE_URL
            if styles is None:
                styles = _styles_from_settings(settings.ENDPOINT_STYLES)
            if timeout_seconds is None:
                timeout_seconds = settings.REQUEST_TIMEOUT_SECONDS
            if warmup_timeout_seconds is None:
                warmup_timeout_seconds = settings.WARMUP_TIMEOUT_SECONDS

        self._base_url = (base_url or "").strip()
        self._styles = tuple(styles)
        self._timeout = timeout_seconds
        self._warmup_timeout = warmup_timeout_seconds

    @property
    def styles(self) -> tuple[EndpointStyle, ...]:
        return self._styles

    async def call(
        self, operation: str, method: str = "GET", payload: dict | None = None
    ) -> Any:
        """Run a logical operation against the first candidate that answers.

        GET payloads become query parameters; POST payloads become the body.
        Raises TransportError when every attempt fails and ApplicationError
        when the service answers with a tagged failure.
        """
        method = method.upper()
        if not self._base_url:
            raise TransportError(operation, ValueError("API_BASE_URL not set"))

        query = encode_query(payload) if method == "GET" else ""
        candidates = build_candidates(self._base_url, operation, query, self._styles)

        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            outcome = await self._first_success(client, candidates, method, operation, payload)

        if isinstance(outcome, Failure):
            logger.warning("All %d candidates failed for op=%s", len(candidates), operation)
            raise TransportError(operation, outcome.error) from outcome.error

        return unwrap_envelope(operation, outcome.value)

    async def _first_success(
        self,
        client: httpx.AsyncClient,
        candidates: list[Candidate],
        method: str,
        operation: str,
        payload: dict | None,
    ) -> AttemptResult:
        """Try candidates in order; stop at the first Success, else keep the last Failure."""
        outcome: AttemptResult = Failure(None)
        for candidate in candidates:
            if method == "GET":
                outcome = await self._attempt(client, "GET", candidate.url)
            else:
                outcome = await self._attempt_write(client, candidate.url, operation, payload)
            if isinstance(outcome, Success):
                logger.debug("op=%s answered by %s style", operation, candidate.style.value)
                return outcome
        return outcome

    async def _attempt_write(
        self,
        client: httpx.AsyncClient,
        url: str,
        operation: str,
        payload: dict | None,
    ) -> AttemptResult:
        body = json.dumps(payload or {})
        outcome = await self._attempt(
            client, "POST", url,
            content=body,
            headers={"Content-Type": "application/json"},
        )
        if isinstance(outcome, Success):
            return outcome

        form = {"op": operation, "action": operation, "route": operation, "payload": body}
        return await self._attempt(
            client, "POST", url,
            content=urlencode(form),
            headers={"Content-Type": _FORM_CONTENT_TYPE},
        )

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        content: str | None = None,
        headers: dict | None = None,
    ) -> AttemptResult:
        """One bounded request. Never raises; failures come back as Failure."""
        all_headers = {**_NO_STORE, **(headers or {})}
        try:
            if method == "GET":
                request = client.get(url, headers=all_headers)
            else:
                request = client.post(url, content=content, headers=all_headers)
            resp = await asyncio.wait_for(request, timeout=self._timeout)
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as exc:
            logger.debug("%s %s failed: %r", method, url, exc)
            return Failure(exc)

        if not resp.is_success:
            failure = HTTPStatusFailure(resp.status_code, resp.reason_phrase, resp.text[:200], url)
            logger.debug("%s %s failed: %s", method, url, failure)
            return Failure(failure)

        return Success(parse_body(resp.text))

    async def warm_up(self) -> None:
        """Wake a cold backend by pinging every route style at once.

        Returns as soon as any ping settles or the warm-up timeout passes.
        Never raises.
        """
        if not self._base_url:
            return

        base = self._base_url.rstrip("/")
        urls = [
            f"{base}/ping",
            f"{base}?action=ping",
            f"{base}?route=ping",
            f"{base}?op=ping",
            f"{base}/",
        ]
        try:
            async with httpx.AsyncClient(
                timeout=self._warmup_timeout, follow_redirects=True
            ) as client:
                tasks = [asyncio.ensure_future(client.get(u, headers=_NO_STORE)) for u in urls]
                await asyncio.wait(
                    tasks, timeout=self._warmup_timeout, return_when=asyncio.FIRST_COMPLETED
                )
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
        except Exception as exc:
            logger.debug("Warm-up ping failed: %s", exc)
