import asyncio
import logging
from typing import Iterable, Optional

import httpx
from pydantic import ValidationError

from tfdeployer.config.provider import RelayConfig
from tfdeployer.modules.control import LogEndpointRejected, LogRelayError
from tfdeployer.modules.framing import LineGroup

from .models import LogContinuation, LogData

logger = logging.getLogger("tfdeployer.relay")
output_logger = logging.getLogger("tfdeployer.output")


class LogRelay:
    def __init__(
        self,
        endpoint: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        initial_backoff: float = 0.1,
        max_backoff: float = 5.0,
        request_timeout: float = 30.0,
    ):
        """
        Initialize log relay.

        Args:
            endpoint: First endpoint of the log session; empty disables posting
            client: HTTP client to post with (created on demand if omitted)
            initial_backoff: Seconds to wait before the first retry
            max_backoff: Cap for the doubling backoff
            request_timeout: Per-request timeout in seconds

        The current endpoint is a single-use cursor: every successful post
        returns the endpoint for the next one. Only this instance updates it.
        """
        self._endpoint = endpoint or None
        self._client = client
        self._owns_client = client is None
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.request_timeout = request_timeout

    @classmethod
    def from_config(
        cls,
        endpoint: Optional[str],
        config: RelayConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "LogRelay":
        return cls(
            endpoint,
            client=client,
            initial_backoff=config.initial_backoff,
            max_backoff=config.max_backoff,
            request_timeout=config.request_timeout,
        )

    @property
    def endpoint(self) -> Optional[str]:
        return self._endpoint

    @property
    def enabled(self) -> bool:
        return self._endpoint is not None

    async def send(self, group: LineGroup, done: bool = False) -> None:
        """
        Echo a line group locally and post it to the current endpoint.

        Logic:
        1. Echo lines to the output logger
        2. Post {lines, done, error}; a group carrying an error is always terminal
        3. Retry transport errors and 5xx forever with capped exponential backoff
        4. On 200, raise the group's error if it had one, else adopt the continuation

        Raises:
            LogEndpointRejected: Collector rejected the post (4xx)
            LogRelayError: Collector accepted the post but the response is unusable
            Exception: The error carried by ``group``, after it was posted
        """
        for line in group.lines:
            output_logger.info(line)

        if not self.enabled:
            if group.error is not None:
                raise group.error
            return

        terminal = done or group.error is not None
        payload = LogData(
            lines=group.lines,
            done=terminal,
            error=str(group.error) if group.error is not None else None,
        ).model_dump_json()

        response = await self._post(payload)

        if group.error is not None:
            self._endpoint = None
            raise group.error

        if terminal:
            # Session closed; the collector has no continuation to give
            self._endpoint = None
            return

        self._endpoint = self._continuation(response) or None

    async def send_lines(self, lines: Iterable[str], done: bool = False) -> None:
        await self.send(LineGroup(lines=list(lines)), done=done)

    async def finish(self) -> None:
        """Post the terminal marker of a successful run."""
        await self.send_lines(["done"], done=True)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LogRelay":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _post(self, payload: str) -> httpx.Response:
        client = self._get_client()
        next_backoff = self.initial_backoff

        while True:
            url = self._endpoint
            try:
                response = await client.post(
                    url,
                    content=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=self.request_timeout,
                )
            except httpx.TransportError as e:
                logger.warning(f"Failed to send log data: {e!r}")
                next_backoff = await self._backoff(next_backoff)
                continue

            if response.status_code == 200:
                return response

            if response.status_code >= 500:
                logger.warning(f"Server error from log endpoint: {response.status_code}")
                next_backoff = await self._backoff(next_backoff)
                continue

            raise LogEndpointRejected(url, response.status_code, response.text)

    async def _backoff(self, delay: float) -> float:
        logger.info(f"Backing off for {delay:g}s before retrying")
        await asyncio.sleep(delay)
        return min(delay * 2, self.max_backoff)

    def _continuation(self, response: httpx.Response) -> str:
        try:
            return LogContinuation.model_validate_json(response.content).continue_url
        except ValidationError as e:
            raise LogRelayError(f"failed to decode response from log endpoint: {e}") from e

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client
