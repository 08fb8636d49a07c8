"""Tests for the rate-limited GitHub API client."""

import json
from collections.abc import Callable

import httpx
import pytest

from orgpulse.github_client.client import (
    DEFAULT_RATE_LIMIT_WAIT,
    GitHubAPIClient,
    GraphQLRequest,
    RestRequest,
    RetryContext,
    backoff_delay,
)
from orgpulse.github_client.errors import ErrorKind, GitHubAPIError, GraphQLQueryError

NOW = 1_700_000_000.0


class ScriptedTransport:
    """Replays a list of responses (or exceptions), one per request."""

    def __init__(self, responses: list[httpx.Response | Exception]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_client(
    script: ScriptedTransport,
    sleeper: Callable,
    max_retries: int = 3,
    on_attempt: Callable[[RetryContext], None] | None = None,
) -> GitHubAPIClient:
    return GitHubAPIClient(
        "test_token",
        max_retries=max_retries,
        transport=httpx.MockTransport(script),
        sleep=sleeper,
        clock=lambda: NOW,
        on_attempt=on_attempt,
    )


def ok(data: dict | None = None, headers: dict | None = None) -> httpx.Response:
    return httpx.Response(200, json={"data": data or {}}, headers=headers)


class TestBackoff:
    """Test the exponential backoff schedule."""

    def test_backoff_is_monotonic(self) -> None:
        """Attempts 0, 1, 2 wait 1, 3, 9 seconds."""
        assert [backoff_delay(a) for a in range(3)] == [1.0, 3.0, 9.0]


class TestRetries:
    """Test retry classification in execute()."""

    @pytest.mark.asyncio
    async def test_retry_budget_exhausted(self, sleeper) -> None:
        """Four 503s give three retries and then the error."""
        script = ScriptedTransport([httpx.Response(503, json={"message": "down"})] * 4)
        client = make_client(script, sleeper)

        with pytest.raises(GitHubAPIError) as exc_info:
            await client.graphql("query { viewer { login } }", {})
        await client.aclose()

        assert exc_info.value.status == 503
        assert len(script.requests) == 4
        assert sleeper.delays == [1.0, 3.0, 9.0]

    @pytest.mark.asyncio
    async def test_transient_error_then_success(self, sleeper) -> None:
        """A 502 followed by success returns the response after one backoff."""
        script = ScriptedTransport(
            [httpx.Response(502), ok({"viewer": {"login": "me"}})]
        )
        async with make_client(script, sleeper) as client:
            response = await client.graphql("query { viewer { login } }", {})

        assert response.data == {"viewer": {"login": "me"}}
        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, sleeper) -> None:
        """Transport failures without a status are retryable."""
        request = httpx.Request("POST", "https://api.github.com/graphql")
        script = ScriptedTransport(
            [httpx.ConnectError("connection reset", request=request), ok()]
        )
        async with make_client(script, sleeper) as client:
            await client.graphql("query { viewer { login } }", {})

        assert len(script.requests) == 2
        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_network_error_past_budget_raises(self, sleeper) -> None:
        """Persistent transport failures surface once the budget is used."""
        request = httpx.Request("POST", "https://api.github.com/graphql")
        script = ScriptedTransport([httpx.ReadTimeout("slow", request=request)])
        async with make_client(script, sleeper, max_retries=2) as client:
            with pytest.raises(httpx.ReadTimeout):
                await client.graphql("query { viewer { login } }", {})

        assert len(script.requests) == 3

    @pytest.mark.asyncio
    async def test_bare_429_uses_backoff(self, sleeper) -> None:
        """429 without a zero quota header is transient, not rate-limited."""
        script = ScriptedTransport([httpx.Response(429), ok()])
        async with make_client(script, sleeper) as client:
            await client.graphql("query { viewer { login } }", {})

        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_fatal_error_not_retried(self, sleeper) -> None:
        """A 404 is raised immediately without sleeping."""
        script = ScriptedTransport([httpx.Response(404, json={"message": "Not Found"})])
        async with make_client(script, sleeper) as client:
            with pytest.raises(GitHubAPIError, match="Not Found"):
                await client.get("/repos/acme/missing")

        assert len(script.requests) == 1
        assert sleeper.delays == []


class TestRateLimit:
    """Test rate-limit pacing."""

    @pytest.mark.asyncio
    async def test_waits_until_reset_plus_buffer(self, sleeper) -> None:
        """A 429 with remaining 0 sleeps until the reset time plus one second."""
        reset = int(NOW) + 100
        limited = httpx.Response(
            429,
            headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": str(reset)},
        )
        script = ScriptedTransport([limited, ok()])
        async with make_client(script, sleeper) as client:
            await client.graphql("query { viewer { login } }", {})

        assert sleeper.delays == [101.0]
        assert sleeper.delays[0] >= reset - NOW + 1

    @pytest.mark.asyncio
    async def test_rate_limit_retries_are_unbounded(self, sleeper) -> None:
        """Rate-limit waits do not consume the retry budget."""
        limited = httpx.Response(
            403,
            headers={
                "x-ratelimit-remaining": "0",
                "x-ratelimit-reset": str(int(NOW) + 10),
            },
        )
        script = ScriptedTransport([limited] * 6 + [ok()])
        async with make_client(script, sleeper, max_retries=3) as client:
            await client.graphql("query { viewer { login } }", {})

        assert len(script.requests) == 7
        assert sleeper.delays == [11.0] * 6

    @pytest.mark.asyncio
    async def test_missing_reset_waits_default(self, sleeper) -> None:
        """Without a reset header the client waits a fixed minute."""
        limited = httpx.Response(403, headers={"x-ratelimit-remaining": "0"})
        script = ScriptedTransport([limited, ok()])
        async with make_client(script, sleeper) as client:
            await client.graphql("query { viewer { login } }", {})

        assert sleeper.delays == [DEFAULT_RATE_LIMIT_WAIT]

    @pytest.mark.asyncio
    async def test_retry_after_is_honored(self, sleeper) -> None:
        """A secondary rate limit waits the retry-after seconds, then retries."""
        throttled = httpx.Response(
            403, headers={"x-ratelimit-remaining": "4000", "retry-after": "60"}
        )
        script = ScriptedTransport([throttled, ok()])
        async with make_client(script, sleeper, max_retries=0) as client:
            await client.graphql("query { viewer { login } }", {})

        assert len(script.requests) == 2
        assert sleeper.delays == [60.0]

    @pytest.mark.asyncio
    async def test_past_reset_waits_only_buffer(self, sleeper) -> None:
        """A reset time already in the past still waits the 1s buffer."""
        limited = httpx.Response(
            429,
            headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": str(int(NOW) - 30)},
        )
        script = ScriptedTransport([limited, ok()])
        async with make_client(script, sleeper) as client:
            await client.graphql("query { viewer { login } }", {})

        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_rate_limit_exposed_on_success(self, sleeper) -> None:
        """Quota headers on a successful response populate rate_limit."""
        headers = {
            "x-ratelimit-limit": "5000",
            "x-ratelimit-remaining": "4321",
            "x-ratelimit-reset": str(int(NOW) + 600),
        }
        script = ScriptedTransport([ok(headers=headers)])
        async with make_client(script, sleeper) as client:
            response = await client.graphql("query { viewer { login } }", {})

        assert response.rate_limit is not None
        assert response.rate_limit.limit == 5000
        assert response.rate_limit.remaining == 4321

    @pytest.mark.asyncio
    async def test_rate_limit_from_graphql_body(self, sleeper) -> None:
        """Without headers the GraphQL rateLimit field is used."""
        body = {
            "rateLimit": {
                "limit": 5000,
                "remaining": 4999,
                "resetAt": "2024-06-01T13:00:00Z",
            }
        }
        script = ScriptedTransport([ok(body)])
        async with make_client(script, sleeper) as client:
            response = await client.graphql("query { rateLimit { remaining } }", {})

        assert response.rate_limit is not None
        assert response.rate_limit.remaining == 4999


class TestGraphQLErrors:
    """Test handling of GraphQL error payloads."""

    @pytest.mark.asyncio
    async def test_not_found_returns_partial_data(self, sleeper) -> None:
        """NOT_FOUND errors leave the null field for the caller."""
        payload = {
            "data": {"repository": None},
            "errors": [{"type": "NOT_FOUND", "message": "Could not resolve"}],
        }
        script = ScriptedTransport([httpx.Response(200, json=payload)])
        async with make_client(script, sleeper) as client:
            response = await client.graphql("query { repository { id } }", {})

        assert response.data == {"repository": None}

    @pytest.mark.asyncio
    async def test_rate_limited_error_is_waited_out(self, sleeper) -> None:
        """A RATE_LIMITED GraphQL error is treated like an exhausted quota."""
        payload = {"errors": [{"type": "RATE_LIMITED", "message": "API rate limit exceeded"}]}
        limited = httpx.Response(
            200, json=payload, headers={"x-ratelimit-reset": str(int(NOW) + 5)}
        )
        script = ScriptedTransport([limited, ok({"viewer": {"login": "me"}})])
        async with make_client(script, sleeper) as client:
            response = await client.graphql("query { viewer { login } }", {})

        assert response.data == {"viewer": {"login": "me"}}
        assert sleeper.delays == [6.0]

    @pytest.mark.asyncio
    async def test_other_errors_are_fatal(self, sleeper) -> None:
        """Query errors raise GraphQLQueryError without retrying."""
        payload = {"errors": [{"message": "Field 'nope' doesn't exist"}]}
        script = ScriptedTransport([httpx.Response(200, json=payload)])
        async with make_client(script, sleeper) as client:
            with pytest.raises(GraphQLQueryError) as exc_info:
                await client.graphql("query { nope }", {})

        assert exc_info.value.errors == payload["errors"]
        assert len(script.requests) == 1


class TestRequests:
    """Test request construction and hooks."""

    @pytest.mark.asyncio
    async def test_graphql_request_body_and_auth(self, sleeper) -> None:
        """GraphQL requests POST query and variables with a bearer token."""
        script = ScriptedTransport([ok()])
        async with make_client(script, sleeper) as client:
            await client.execute(
                GraphQLRequest(query="query($org: String!) { x }", variables={"org": "acme"})
            )

        sent = script.requests[0]
        assert sent.method == "POST"
        assert sent.url.path == "/graphql"
        assert sent.headers["Authorization"] == "Bearer test_token"
        assert json.loads(sent.content)["variables"] == {"org": "acme"}

    @pytest.mark.asyncio
    async def test_rest_request(self, sleeper) -> None:
        """REST requests pass params and return the raw JSON body."""
        script = ScriptedTransport([httpx.Response(200, json={"resources": {}})])
        async with make_client(script, sleeper) as client:
            response = await client.execute(
                RestRequest(path="/rate_limit", params={"page": 2})
            )

        assert script.requests[0].url.params["page"] == "2"
        assert response.data == {"resources": {}}

    @pytest.mark.asyncio
    async def test_on_attempt_hook(self, sleeper) -> None:
        """The hook sees each failed attempt's classification and delay."""
        contexts: list[RetryContext] = []
        script = ScriptedTransport([httpx.Response(500), httpx.Response(500), ok()])
        async with make_client(script, sleeper, on_attempt=contexts.append) as client:
            await client.graphql("query { viewer { login } }", {})

        assert [c.attempt for c in contexts] == [1, 2]
        assert [c.delay for c in contexts] == [1.0, 3.0]
        assert all(c.kind is ErrorKind.RETRYABLE for c in contexts)

    def test_unauthenticated_client_has_no_auth_header(self) -> None:
        """No token means no Authorization header."""
        client = GitHubAPIClient(None)
        assert "Authorization" not in client._http.headers
