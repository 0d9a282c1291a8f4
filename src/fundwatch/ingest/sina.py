from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import aiohttp
import structlog

from fundwatch.ingest import parser  # exposes extract_jsonp_array / parse_quote_row
from fundwatch.utils.types import Quote

# fund class label -> Sina market-center node
FUND_NODES: dict[str, str] = {
    "etf": "etf_hq_fund",
    "lof": "lof_hq_fund",
    "closed": "close_fund",
}

FUND_LABELS: dict[str, str] = {
    "etf": "ETF",
    "lof": "LOF",
    "closed": "closed-end fund",
}

SINA_URL = (
    "http://vip.stock.finance.sina.com.cn/quotes_service/api/jsonp.php/"
    "IO.XSRV2.CallbackList['da_yPT46_Ll7K6WD']/Market_Center.getHQNodeDataSimple"
)


class QuoteSourceError(Exception):
    """Fetching or decoding one fund class failed."""


@dataclass(slots=True)
class SinaConfig:
    url: str = SINA_URL
    page_size: int = 1000
    max_pages: int = 5
    timeout_s: float = 10.0
    referer: str = "https://finance.sina.com.cn/"


class SinaQuoteSource:
    """
    Snapshot quotes for whole fund classes from Sina's market-center API.

    One call per class returns every listed fund in it; the caller filters
    down to its watchlist. Pages are walked until a short page comes back.

    Usage:
        src = SinaQuoteSource(SinaConfig())
        await src.start()
        quotes = await src.fetch_quotes("etf")
        await src.stop()
    """

    def __init__(self, cfg: Optional[SinaConfig] = None, session: Optional[aiohttp.ClientSession] = None):
        self.cfg = cfg or SinaConfig()
        self._session = session
        self._owns_session = session is None
        self._log = structlog.get_logger("sina")

    async def start(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout, headers={"Referer": self.cfg.referer})
            self._owns_session = True

    async def stop(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    # ---------------------------- public API ---------------------------- #

    async def fetch_quotes(self, fund_class: str) -> list[Quote]:
        """All quotes for one class, in the order served. Raises QuoteSourceError."""
        node = FUND_NODES.get(fund_class)
        if node is None:
            raise QuoteSourceError(f"unknown fund class: {fund_class!r}")
        if self._session is None:
            await self.start()

        quotes: list[Quote] = []
        skipped = 0
        for page in range(1, self.cfg.max_pages + 1):
            rows = await self._fetch_page(node, page)
            for row in rows:
                q = parser.parse_quote_row(row)
                if q is None:
                    skipped += 1
                    continue
                quotes.append(q)
            if len(rows) < self.cfg.page_size:
                break
        else:
            self._log.warning("sina_page_limit_hit", fund_class=fund_class, pages=self.cfg.max_pages)

        if skipped:
            self._log.debug("sina_rows_skipped", fund_class=fund_class, count=skipped)
        self._log.debug("sina_fetched", fund_class=fund_class, quotes=len(quotes))
        return quotes

    # --------------------------- core internals ------------------------- #

    async def _fetch_page(self, node: str, page: int) -> list[dict]:
        assert self._session is not None
        params = {
            "page": str(page),
            "num": str(self.cfg.page_size),
            "sort": "symbol",
            "asc": "0",
            "node": node,
        }
        try:
            async with self._session.get(self.cfg.url, params=params) as resp:
                if resp.status != 200:
                    raise QuoteSourceError(f"HTTP {resp.status} for node {node}")
                body = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise QuoteSourceError(f"request failed for node {node}: {e!s}") from e

        try:
            return parser.extract_jsonp_array(body)
        except parser.PayloadError as e:
            raise QuoteSourceError(str(e)) from e
