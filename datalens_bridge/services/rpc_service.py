from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Literal, Optional

import httpx

from ..config import Settings
from ..errors import (
    BridgeError,
    ConfigurationError,
    DecodeError,
    InvalidArgumentsError,
    TransportError,
    UpstreamError,
)

logger = logging.getLogger("datalens_bridge.rpc")

MAX_BODY_BYTES = 2000
TRUNCATION_MARKER = "...(truncated)"
LEGACY_AUTH_PREFIX = "OAuth "

OutcomeKind = Literal["empty", "object", "upstream", "transport", "decode"]


def truncate_utf8(text: str, max_bytes: int = MAX_BODY_BYTES) -> str:
    data = text.encode("utf-8")
    if len(data) <= max_bytes:
        return text
    end = max_bytes
    # step back over continuation bytes so the cut lands on a character start
    while end > 0 and (data[end] & 0xC0) == 0x80:
        end -= 1
    return data[:end].decode("utf-8") + TRUNCATION_MARKER


def parse_response_data(body: str) -> Any:
    try:
        return json.loads(body)
    except ValueError:
        return truncate_utf8(body)


def legacy_auth_token(token: str) -> str:
    if token.startswith(LEGACY_AUTH_PREFIX):
        return token
    return f"{LEGACY_AUTH_PREFIX}{token}"


@dataclass(frozen=True)
class CallOutcome:
    kind: OutcomeKind
    method: str
    body: dict[str, Any] = field(default_factory=dict)
    status: Optional[int] = None
    error: Optional[BridgeError] = None

    @property
    def ok(self) -> bool:
        return self.kind in ("empty", "object")

    def unwrap(self) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        return self.body


def _check_method(method: str) -> None:
    # the name becomes a URL path segment
    if not method or not method.isascii() or not method.isprintable() or any(c in method for c in " /?#%"):
        raise InvalidArgumentsError(f"invalid DataLens RPC method name: {method!r}", {"method": method})


def _header(name: str, value: str) -> tuple[str, str]:
    if not value.isascii() or "\r" in value or "\n" in value:
        raise InvalidArgumentsError(f"invalid header value for `{name}`", {"header": name})
    return name, value


class RpcClient:
    """Sends canonical requests to ``{base_url}/rpc/{method}``.

    The underlying ``httpx.AsyncClient`` is created once and shared by every
    call; pass ``http`` to inject a preconfigured client (tests use a
    ``MockTransport``).
    """

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=float(settings.timeout_seconds))

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def url_for(self, method: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/rpc/{method}"

    def build_headers(self, method: str) -> dict[str, str]:
        org_id = self.settings.org_id
        token = self.settings.subject_token
        if not org_id:
            raise ConfigurationError(
                "DATALENS_ORG_ID environment variable is required",
                {"method": method, "missing": "DATALENS_ORG_ID"},
            )
        if not token:
            raise ConfigurationError(
                "YC_IAM_TOKEN (or DATALENS_IAM_TOKEN) environment variable is required",
                {"method": method, "missing": "YC_IAM_TOKEN"},
            )
        return dict(
            [
                ("Accept", "application/json"),
                ("Content-Type", "application/json"),
                _header("x-dl-api-version", self.settings.api_version),
                _header("x-dl-org-id", org_id),
                _header("x-yacloud-subjecttoken", token),
                _header("x-dl-auth-token", legacy_auth_token(token)),
            ]
        )

    async def invoke(self, method: str, payload: Any) -> CallOutcome:
        """Run one RPC call and classify the response.

        Raises InvalidArgumentsError / ConfigurationError before any network
        activity; every failure after that is reported in the outcome.
        """
        _check_method(method)
        if not isinstance(payload, dict):
            raise InvalidArgumentsError("payload must be a JSON object", {"method": method})
        headers = self.build_headers(method)
        url = self.url_for(method)
        logger.debug("calling DataLens API", extra={"method": method})

        start = perf_counter()
        try:
            response = await self.http.post(url, headers=headers, content=json.dumps(payload).encode("utf-8"))
            body = response.text
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            cause = str(e) or e.__class__.__name__
            outcome = CallOutcome(
                kind="transport",
                method=method,
                error=TransportError(
                    f"failed to reach DataLens API: {cause}",
                    {"method": method, "cause": cause},
                ),
            )
        else:
            outcome = self._classify(method, response, body)
        self._log(outcome, perf_counter() - start)
        return outcome

    async def call(self, method: str, payload: Any) -> dict[str, Any]:
        outcome = await self.invoke(method, payload)
        return outcome.unwrap()

    def _classify(self, method: str, response: httpx.Response, body: str) -> CallOutcome:
        status = response.status_code
        if not response.is_success:
            reason = f"{status} {response.reason_phrase}".strip()
            return CallOutcome(
                kind="upstream",
                method=method,
                status=status,
                error=UpstreamError(
                    f"DataLens API returned {reason} for method {method}",
                    status,
                    {"method": method, "status": status, "response": parse_response_data(body)},
                ),
            )

        if not body.strip():
            return CallOutcome(kind="empty", method=method, status=status)

        try:
            parsed = json.loads(body)
        except ValueError as e:
            problem = str(e)
        else:
            if isinstance(parsed, dict):
                return CallOutcome(kind="object", method=method, status=status, body=parsed)
            problem = f"expected a JSON object, got {type(parsed).__name__}"
        return CallOutcome(
            kind="decode",
            method=method,
            status=status,
            error=DecodeError(
                f"DataLens API returned invalid or non-object JSON: {problem}",
                {"method": method, "body": truncate_utf8(body)},
            ),
        )

    def _log(self, outcome: CallOutcome, elapsed: float) -> None:
        extra = {
            "method": outcome.method,
            "outcome": outcome.kind,
            "status": outcome.status,
            "duration_ms": round(elapsed * 1000, 1),
        }
        if outcome.ok:
            logger.info("DataLens call %s -> %s", outcome.method, outcome.kind, extra=extra)
        else:
            logger.warning(
                "DataLens call %s failed (%s): %s",
                outcome.method,
                outcome.kind,
                outcome.error.message if outcome.error else "",
                extra=extra,
            )
