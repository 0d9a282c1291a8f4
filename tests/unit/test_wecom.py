import aiohttp
import pytest

from fundwatch.alerts.notifiers import NotificationError
from fundwatch.notify.wecom import WeComConfig, WeComNotifier, split_message
from fundwatch.utils.backoff import RetryPolicy
from tests.helpers.fake_http import FakeResponse, FakeSession

OK = FakeResponse(json_data={"errcode": 0, "errmsg": "ok"})
NO_WAIT = RetryPolicy(max_attempts=3, initial_s=0.0, jitter_ratio=0.0)


def _notifier(session):
    return WeComNotifier(WeComConfig(key="KEY", retry=NO_WAIT), session=session)


@pytest.mark.asyncio
async def test_send_posts_text_payload_with_key():
    session = FakeSession([OK])
    await _notifier(session).send("hello")

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["params"] == {"key": "KEY"}
    assert call["json"] == {"msgtype": "text", "text": {"content": "hello"}}


@pytest.mark.asyncio
async def test_server_error_retried_then_ok():
    session = FakeSession([FakeResponse(status=503, text="busy"), OK])
    await _notifier(session).send("hello")
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_network_error_retried_then_ok():
    session = FakeSession([aiohttp.ClientConnectionError("reset"), OK])
    await _notifier(session).send("hello")
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_rate_limited_gives_up_after_max_attempts():
    limited = FakeResponse(json_data={"errcode": 45009, "errmsg": "api freq out of limit"})
    session = FakeSession([limited])
    with pytest.raises(NotificationError, match="gave up after 3 attempts"):
        await _notifier(session).send("hello")
    assert len(session.calls) == 3


@pytest.mark.asyncio
async def test_bad_key_not_retried():
    session = FakeSession([FakeResponse(json_data={"errcode": 93000, "errmsg": "invalid webhook url"})])
    with pytest.raises(NotificationError, match="93000"):
        await _notifier(session).send("hello")
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_long_message_sent_in_chunks():
    session = FakeSession([OK])
    block = "【基金】" + "涨" * 300          # ~912 bytes of UTF-8
    await _notifier(session).send("\n\n".join([block] * 3))
    contents = [c["json"]["text"]["content"] for c in session.calls]
    assert len(contents) == 2
    assert all(len(c.encode("utf-8")) <= 2048 for c in contents)
    assert "\n\n".join(contents) == "\n\n".join([block] * 3)


def test_split_message_short_text_untouched():
    assert split_message("a\n\nb") == ["a\n\nb"]


def test_split_message_breaks_oversized_line():
    parts = split_message("x" * 50, limit_bytes=20)
    assert parts == ["x" * 20, "x" * 20, "x" * 10]


def test_split_message_keeps_single_newlines_inside_a_block():
    text = "a" * 8 + "\n" + "b" * 8 + "\n" + "c" * 8
    parts = split_message(text, limit_bytes=20)
    assert parts == ["a" * 8 + "\n" + "b" * 8, "c" * 8]


def test_split_message_keeps_block_gaps_between_blocks():
    big = "x" * 6 + "\n" + "y" * 6 + "\n" + "z" * 6
    parts = split_message("q\n\n" + big, limit_bytes=16)
    assert parts == ["q\n\n" + "x" * 6 + "\n" + "y" * 6, "z" * 6]
