import asyncio
from decimal import Decimal

from fundwatch.utils.types import Quote


def make_quote(code="X", name=None, trade="10.00", open_="10.00", prior_close="9.50"):
    return Quote(
        code=code,
        symbol=f"sz{code}",
        name=name or code,
        trade=Decimal(trade),
        open=Decimal(open_),
        prior_close=Decimal(prior_close),
    )


class FakeSource:
    """
    QuoteSource stub. `books` maps fund class -> list[Quote] or an Exception.
    Set `gate` to an asyncio.Event to hold fetches until it is set.
    """
    def __init__(self, books=None):
        self.books = books or {}
        self.calls = []
        self.gate = None

    async def fetch_quotes(self, fund_class):
        self.calls.append(fund_class)
        if self.gate is not None:
            await self.gate.wait()
        res = self.books.get(fund_class, [])
        if isinstance(res, Exception):
            raise res
        return list(res)


class RecordingSink:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send(self, text):
        self.sent.append(text)
        if self.fail:
            raise RuntimeError("sink down")


async def settle():
    """Let pending tasks run a few loop iterations."""
    for _ in range(5):
        await asyncio.sleep(0)
