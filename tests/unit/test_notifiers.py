import pytest

from fundwatch.alerts.notifiers import ConsoleNotifier, FanoutNotifier, NotificationError
from tests.helpers.fakes import RecordingSink


@pytest.mark.asyncio
async def test_console_prints(capsys):
    await ConsoleNotifier().send("【X】🔴intraday 10.71%")
    assert capsys.readouterr().out == "[ALERT] 【X】🔴intraday 10.71%\n"


@pytest.mark.asyncio
async def test_fanout_tries_every_sink_then_raises():
    bad, good = RecordingSink(fail=True), RecordingSink()
    with pytest.raises(NotificationError, match="RecordingSink"):
        await FanoutNotifier([bad, good]).send("msg")
    assert bad.sent == ["msg"] and good.sent == ["msg"]


@pytest.mark.asyncio
async def test_fanout_all_ok():
    a, b = RecordingSink(), RecordingSink()
    await FanoutNotifier([a, b]).send("msg")
    assert a.sent == b.sent == ["msg"]
