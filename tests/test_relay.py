import logging
import os
import sys
from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import CollectorResponse
from tfdeployer.config.provider import RelayConfig
from tfdeployer.modules.control import (
    CommandFailed,
    ControlChannelError,
    LogEndpointRejected,
    LogRelayError,
)
from tfdeployer.modules.framing import LineGroup
from tfdeployer.modules.relay import LogRelay


@pytest.fixture
def relay(collector):
    return LogRelay(collector.first_url, client=collector.client())


@pytest.mark.asyncio
async def test_endpoint_rotates_on_each_post(relay, collector):
    """Test that each post goes to the endpoint returned by the previous one"""
    await relay.send(LineGroup(lines=["a"]))
    await relay.send(LineGroup(lines=["b", "c"]))
    await relay.send(LineGroup(lines=[]))

    assert collector.urls == [
        "http://collector.test/log/0",
        "http://collector.test/log/1",
        "http://collector.test/log/2",
    ]
    assert relay.endpoint == "http://collector.test/log/3"
    assert collector.lines == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_post_payload(relay, collector):
    """Test the body and headers of a log post"""
    await relay.send(LineGroup(lines=["Plan: 1 to add"]))

    call_ = collector.calls[0]
    assert call_.payload == {"lines": ["Plan: 1 to add"], "done": False, "error": None}
    assert call_.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_server_errors_retried_with_backoff(relay, collector):
    """Test that 5xx responses are retried after 0.1s then 0.2s"""
    collector.script(CollectorResponse(503), CollectorResponse(502, body="bad gateway"))

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await relay.send(LineGroup(lines=["a"]))

    assert collector.call_count == 3
    assert set(collector.urls) == {"http://collector.test/log/0"}
    assert mock_sleep.call_args_list == [call(0.1), call(0.2)]
    assert relay.endpoint == "http://collector.test/log/1"


@pytest.mark.asyncio
async def test_backoff_is_capped(relay, collector):
    """Test that the wait between retries stops growing at the cap"""
    collector.script(*[CollectorResponse(500) for _ in range(9)])

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await relay.send(LineGroup(lines=["a"]))

    waits = [c.args[0] for c in mock_sleep.call_args_list]
    assert waits == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6, 3.2, 5.0, 5.0, 5.0])


@pytest.mark.asyncio
async def test_backoff_resets_per_send(relay, collector):
    """Test that every send starts from the initial backoff"""
    collector.script(CollectorResponse(500), CollectorResponse(500))

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await relay.send(LineGroup(lines=["a"]))
        collector.script(CollectorResponse(500))
        await relay.send(LineGroup(lines=["b"]))

    assert mock_sleep.call_args_list == [call(0.1), call(0.2), call(0.1)]


@pytest.mark.asyncio
async def test_transport_errors_retried(relay, collector):
    """Test that connection failures are retried like server errors"""
    collector.script(CollectorResponse(error=httpx.ConnectError("connection refused")))

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await relay.send(LineGroup(lines=["a"]))

    assert collector.call_count == 2
    mock_sleep.assert_called_once_with(0.1)


@pytest.mark.asyncio
async def test_client_error_is_fatal(relay, collector):
    """Test that a 4xx response is not retried"""
    collector.script(CollectorResponse(404, body="Not found\n"))

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(LogEndpointRejected) as exc_info:
            await relay.send(LineGroup(lines=["a"]))

    assert exc_info.value.status_code == 404
    assert exc_info.value.url == "http://collector.test/log/0"
    assert "unexpected client error status code" in str(exc_info.value)
    mock_sleep.assert_not_called()
    assert collector.call_count == 1


@pytest.mark.asyncio
async def test_error_group_is_posted_then_raised(relay, collector):
    """Test that a failed command closes the session with its error"""
    error = CommandFailed("03-terraform-plan", 1)

    with pytest.raises(CommandFailed) as exc_info:
        await relay.send(LineGroup(error=error))

    assert exc_info.value is error
    assert collector.calls[-1].payload == {"lines": [], "done": True, "error": "non-zero status: 1"}
    assert not relay.enabled


@pytest.mark.asyncio
async def test_terminal_post_response_not_parsed(relay, collector):
    """Test that the collector's reply to a done post is ignored"""
    collector.script(CollectorResponse(200, body="Done.\n"))

    await relay.send(LineGroup(lines=["done"]), done=True)

    assert collector.calls[0].payload["done"] is True
    assert relay.endpoint is None


@pytest.mark.asyncio
async def test_unparsable_continuation(relay, collector):
    """Test that a 200 without a continuation URL is an error"""
    collector.script(CollectorResponse(200, body="not json"))

    with pytest.raises(LogRelayError):
        await relay.send(LineGroup(lines=["a"]))


@pytest.mark.asyncio
async def test_finish_posts_done_marker(relay, collector):
    """Test the terminal post of a successful run"""
    await relay.send(LineGroup(lines=["a"]))
    await relay.finish()

    assert collector.calls[-1].payload == {"lines": ["done"], "done": True, "error": None}
    assert collector.calls[-1].url == "http://collector.test/log/1"


@pytest.mark.asyncio
async def test_disabled_relay_only_echoes(caplog):
    """Test that without an endpoint output is only logged locally"""
    relay = LogRelay(None)

    with caplog.at_level(logging.INFO, logger="tfdeployer.output"):
        await relay.send(LineGroup(lines=["Initializing...", "done"]))

    assert not relay.enabled
    assert [r.getMessage() for r in caplog.records if r.name == "tfdeployer.output"] == [
        "Initializing...",
        "done",
    ]


@pytest.mark.asyncio
async def test_disabled_relay_still_raises_errors():
    """Test that errors surface even when log forwarding is off"""
    relay = LogRelay("")
    error = ControlChannelError("read error: connection reset")

    with pytest.raises(ControlChannelError):
        await relay.send(LineGroup(error=error))


@pytest.mark.asyncio
async def test_from_config(collector):
    """Test building a relay from configuration"""
    config = RelayConfig(initial_backoff=0.5, max_backoff=2.0, request_timeout=5.0)
    collector.script(*[CollectorResponse(503) for _ in range(3)])

    async with LogRelay.from_config(collector.first_url, config, client=collector.client()) as relay:
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await relay.send(LineGroup(lines=["a"]))

    assert relay.request_timeout == 5.0
    assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0, 2.0]
