"""OpenAI-compatible chat-completion client using httpx."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx

from wavecore.core.cancellation import CancellationToken
from wavecore.errors import ProviderError, StreamProtocolError
from wavecore.integrations.streaming.sse import SSEDecoder
from wavecore.integrations.utilities.logger import get_logger
from wavecore.integrations.utilities.retry import rate_limit_retrying
from wavecore.types.messages import (
    ChatRequest,
    ChatResponse,
    StopReason,
    StreamDelta,
    TokenUsage,
    ToolCall,
)

logger = get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
PROVIDER_NAME = "openai-compatible"

Sleep = Callable[[float], Awaitable[Any]]


def _describe_request_error(e: httpx.RequestError) -> str:
    """Build a descriptive error message for httpx request errors.

    httpx.ReadTimeout and similar errors often have empty str(e),
    so we fall back to the exception type name and include the
    chained cause when available.
    """
    msg = str(e)
    if not msg:
        msg = type(e).__name__
    if e.__cause__ and str(e.__cause__):
        msg = f"{msg} (caused by {type(e.__cause__).__name__}: {e.__cause__})"
    return msg


def _backend_error_message(response: httpx.Response) -> str:
    """``error.message`` from a JSON body, else the body text, else the reason."""
    text = response.text
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    if text:
        return text
    return response.reason_phrase or f"HTTP {response.status_code}"


async def _next_chunk(chunks: AsyncIterator[str]) -> str | None:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


class StreamingCompletionClient:
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint.

    HTTP 429 responses are retried with 1s/2s/4s backoff (four attempts in
    total); every other error status fails on the first attempt. The
    backoff sleep is interrupted by the caller's cancellation token.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str = DEFAULT_MODEL,
        *,
        timeout: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        """Create a fresh httpx client."""
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
            transport=self._transport,
        )

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the client, recreating it if closed."""
        if self._client.is_closed:
            self._client = self._create_client()
        return self._client

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def model(self) -> str:
        return self._model

    @property
    def url(self) -> str:
        return f"{self._base_url}/chat/completions"

    # =========================================================================
    # Public API
    # =========================================================================

    async def stream(
        self,
        request: ChatRequest,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamDelta]:
        """Stream deltas for *request*.

        Raises:
            ProviderError: Transport failure or exhausted 429 retries.
            StreamProtocolError: After the last delta, if any payload was malformed.
            CancellationError: The token fired before the stream finished.
        """
        token = token or CancellationToken()
        body = request.to_body(self._model, stream=True)
        decoder = SSEDecoder()

        response = await self._send_with_retry(body, token, stream=True)
        try:
            chunks = response.aiter_text().__aiter__()
            while not decoder.done:
                chunk = await token.run(_next_chunk(chunks))
                if chunk is None:
                    break
                for delta in decoder.feed(chunk):
                    yield delta
            for delta in decoder.finish():
                yield delta
        except httpx.StreamError as e:
            raise ProviderError(
                f"Stream error: {type(e).__name__}: {e}", provider=PROVIDER_NAME, retryable=False,
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"Request error: {_describe_request_error(e)}", provider=PROVIDER_NAME, retryable=False,
            ) from e
        finally:
            await response.aclose()

        if decoder.errors:
            raise StreamProtocolError(
                f"Received {len(decoder.errors)} malformed stream payload(s): {decoder.errors[0]}",
                errors=decoder.errors,
                provider=PROVIDER_NAME,
            )

    async def complete(
        self,
        request: ChatRequest,
        token: CancellationToken | None = None,
    ) -> ChatResponse:
        """Send *request* in non-streaming mode and return the parsed response."""
        token = token or CancellationToken()
        body = request.to_body(self._model, stream=False)
        response = await self._send_with_retry(body, token, stream=False)
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ProviderError(
                f"Invalid JSON response: {response.text[:200]}", provider=PROVIDER_NAME, retryable=False,
            ) from e
        return self._parse_response(data, body["model"])

    async def close(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send_with_retry(
        self,
        body: dict[str, Any],
        token: CancellationToken,
        *,
        stream: bool,
    ) -> httpx.Response:
        async def _sleep(seconds: float) -> None:
            if self._sleep is None:
                await token.sleep(seconds)
                return
            token.check()
            await self._sleep(seconds)
            token.check()

        response: httpx.Response | None = None
        async for attempt in rate_limit_retrying(_sleep):
            with attempt:
                response = await token.run(self._send_once(body, stream=stream))
        assert response is not None
        return response

    async def _send_once(self, body: dict[str, Any], *, stream: bool) -> httpx.Response:
        client = self._ensure_client()
        request = client.build_request("POST", self.url, json=body)
        try:
            response = await client.send(request, stream=stream)
        except httpx.RequestError as e:
            raise ProviderError(
                f"Request error: {_describe_request_error(e)}", provider=PROVIDER_NAME, retryable=False,
            ) from e

        if response.is_success:
            return response

        try:
            await response.aread()
            message = _backend_error_message(response)
        finally:
            await response.aclose()
        logger.debug("backend_error", status=response.status_code, message=message[:200])
        raise ProviderError(message, provider=PROVIDER_NAME, status_code=response.status_code)

    # =========================================================================
    # Parsing
    # =========================================================================

    def _parse_response(self, data: dict[str, Any], model: str) -> ChatResponse:
        choices = data.get("choices") or []
        usage = TokenUsage.from_wire(data["usage"]) if data.get("usage") else None
        if not choices:
            return ChatResponse(content="", usage=usage, model=model, stop_reason=StopReason.END_TURN)
        choice = choices[0]
        message = choice.get("message") or {}
        content = message.get("content") or ""

        tool_calls: list[ToolCall] = []
        for position, tc in enumerate(message.get("tool_calls") or []):
            func = tc.get("function") or {}
            arguments = func.get("arguments", "")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            tool_calls.append(ToolCall(
                id=tc.get("id", ""), name=func.get("name", ""), arguments=arguments, index=position,
            ))

        return ChatResponse(
            content=content,
            tool_calls=tool_calls,
            usage=usage,
            model=model,
            stop_reason=StopReason.from_finish_reason(choice.get("finish_reason")),
        )
