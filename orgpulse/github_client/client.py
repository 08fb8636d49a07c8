"""Rate-limited GitHub API client with retry and exponential backoff."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import BaseModel, Field

from .. import __version__
from .errors import (
    ErrorKind,
    GitHubAPIError,
    GraphQLQueryError,
    RateLimitExceededError,
    classify_error,
)
from .models import RateLimitInfo

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
USER_AGENT = f"orgpulse-cli/{__version__}"
DEFAULT_RATE_LIMIT_WAIT = 60.0
RATE_LIMIT_BUFFER = 1.0
BACKOFF_BASE = 3


class GraphQLRequest(BaseModel):
    """A GraphQL query and its variables."""

    query: str
    variables: dict[str, Any] = Field(default_factory=dict)

    def describe(self) -> str:
        return "POST /graphql"


class RestRequest(BaseModel):
    """A REST endpoint call relative to the API root."""

    method: str = "GET"
    path: str
    params: dict[str, Any] = Field(default_factory=dict)

    def describe(self) -> str:
        return f"{self.method} {self.path}"


class APIResponse(BaseModel):
    """Parsed response of a successful request."""

    status_code: int
    data: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    rate_limit: RateLimitInfo | None = None


class RetryContext(BaseModel):
    """Transient state of one logical request's retry loop."""

    attempt: int = Field(0, description="Backoff rounds used against the budget")
    delay: float = Field(0.0, description="Last wait chosen, in seconds")
    kind: ErrorKind | None = None
    rate_limit_waits: int = 0
    last_error: str | None = None


def backoff_delay(attempt: int) -> float:
    """Delay in seconds before retry ``attempt`` (0-based): 1, 3, 9, ..."""
    return float(BACKOFF_BASE**attempt)


Sleeper = Callable[[float], Awaitable[Any]]


class GitHubAPIClient:
    """Issues REST and GraphQL requests against the GitHub API.

    Rate-limited responses are waited out and retried without limit.
    Transient failures (5xx, bare 429, network errors) are retried up to
    ``max_retries`` times with ``3 ** attempt`` second backoff. Anything else
    is raised immediately.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        max_retries: int = 3,
        timeout: float = 30.0,
        base_url: str = API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        on_attempt: Callable[[RetryContext], None] | None = None,
    ):
        """Initialize the client.

        Args:
            token: GitHub personal access token; unauthenticated when None
            max_retries: Retry budget for transient failures
            timeout: Per-request timeout in seconds
            base_url: API root
            transport: Optional httpx transport (used by tests)
            sleep: Coroutine used for every wait
            clock: Returns the current epoch time in seconds
            on_attempt: Called with the retry context after each failed attempt
        """
        self.token = token
        self.max_retries = max_retries
        self._sleep = sleep
        self._clock = clock
        self._on_attempt = on_attempt

        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._http = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "GitHubAPIClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def graphql(self, query: str, variables: dict[str, Any]) -> APIResponse:
        return await self.execute(GraphQLRequest(query=query, variables=variables))

    async def get(self, path: str, **params: Any) -> APIResponse:
        return await self.execute(RestRequest(path=path, params=params))

    async def execute(self, request: GraphQLRequest | RestRequest) -> APIResponse:
        """Run one logical request, retrying as its failures allow.

        Args:
            request: GraphQL query or REST call

        Returns:
            Parsed response

        Raises:
            GitHubAPIError: Fatal failure, or transient failure past the budget
            httpx.TransportError: Network failure past the budget
        """
        context = RetryContext()

        while True:
            try:
                response = await self._send(request)
            except (GitHubAPIError, httpx.TransportError) as error:
                kind = classify_error(error)
                context.kind = kind
                context.last_error = str(error) or type(error).__name__

                if kind is ErrorKind.RATE_LIMITED and isinstance(error, GitHubAPIError):
                    context.delay = self.rate_limit_delay(error)
                    context.rate_limit_waits += 1
                    logger.warning(
                        "Rate limit hit on %s, waiting %.0fs (wait #%d)",
                        request.describe(),
                        context.delay,
                        context.rate_limit_waits,
                    )
                    self._notify(context)
                    await self._sleep(context.delay)
                    continue

                if kind is ErrorKind.RETRYABLE and context.attempt < self.max_retries:
                    context.delay = backoff_delay(context.attempt)
                    context.attempt += 1
                    logger.warning(
                        "%s failed (%s), retrying in %.0fs (attempt %d/%d)",
                        request.describe(),
                        context.last_error,
                        context.delay,
                        context.attempt,
                        self.max_retries,
                    )
                    self._notify(context)
                    await self._sleep(context.delay)
                    continue

                context.delay = 0.0
                self._notify(context)
                logger.debug(
                    "%s failed with %s error: %s",
                    request.describe(),
                    kind.value,
                    context.last_error,
                )
                raise

            self._log_rate_limit(response.rate_limit)
            return response

    def rate_limit_delay(self, error: GitHubAPIError) -> float:
        """Seconds to wait out a rate limit.

        ``retry-after`` is honored as given. Otherwise the wait runs until the
        quota reset plus a 1s buffer.
        """
        retry_after = error.retry_after
        if retry_after and retry_after.isdigit():
            return float(retry_after)
        reset = error.rate_limit_reset
        if not reset or not reset.isdigit():
            return DEFAULT_RATE_LIMIT_WAIT
        return max(int(reset) - self._clock(), 0.0) + RATE_LIMIT_BUFFER

    def _notify(self, context: RetryContext) -> None:
        if self._on_attempt is not None:
            self._on_attempt(context.model_copy())

    def _log_rate_limit(self, rate_limit: RateLimitInfo | None) -> None:
        if rate_limit is None or rate_limit.remaining is None:
            return
        reset = rate_limit.reset_at.strftime("%H:%M:%S") if rate_limit.reset_at else "?"
        logger.debug(
            "Rate limit: %d requests remaining (resets at %s)",
            rate_limit.remaining,
            reset,
        )

    async def _send(self, request: GraphQLRequest | RestRequest) -> APIResponse:
        if isinstance(request, GraphQLRequest):
            http_response = await self._http.post(
                "/graphql",
                json={"query": request.query, "variables": request.variables},
            )
        else:
            http_response = await self._http.request(
                request.method, request.path, params=request.params
            )

        status = http_response.status_code
        headers = http_response.headers
        if status >= 400:
            raise GitHubAPIError(
                f"HTTP {status} for {request.describe()}: "
                f"{_error_message(http_response)}",
                status=status,
                headers=headers,
            )

        try:
            payload = http_response.json()
        except ValueError as e:
            raise GitHubAPIError(
                f"Invalid JSON from {request.describe()}: {e}",
                status=status,
                headers=headers,
            ) from e

        rate_limit = RateLimitInfo.from_headers(headers)
        data = payload
        if isinstance(request, GraphQLRequest):
            data = _graphql_data(payload, status, headers)
            body_limit = data.get("rateLimit")
            if rate_limit is None and body_limit:
                rate_limit = RateLimitInfo(
                    limit=body_limit.get("limit"),
                    remaining=body_limit.get("remaining"),
                    reset_at=body_limit.get("resetAt"),
                )

        return APIResponse(
            status_code=status,
            data=data,
            headers=dict(headers),
            rate_limit=rate_limit,
        )


def _graphql_data(
    payload: dict[str, Any], status: int, headers: httpx.Headers
) -> dict[str, Any]:
    """Extract ``data`` from a GraphQL payload, raising on blocking errors.

    NOT_FOUND errors are left for the caller, which sees the null field in
    ``data`` and knows which target was missing.
    """
    errors = payload.get("errors") or []
    if errors:
        types = {err.get("type") for err in errors if isinstance(err, dict)}
        if "RATE_LIMITED" in types:
            raise RateLimitExceededError(
                "GraphQL rate limit exceeded", status=status, headers=headers
            )
        if types != {"NOT_FOUND"}:
            raise GraphQLQueryError(errors, status=status, headers=headers)
    return payload.get("data") or {}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "")[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body)[:200]
    return str(body)[:200]
