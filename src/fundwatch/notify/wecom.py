from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

import aiohttp
import structlog

from fundwatch.alerts.notifiers import NotificationError
from fundwatch.utils.backoff import RetryPolicy

log = structlog.get_logger("wecom")

WEBHOOK_URL = "https://qyapi.weixin.qq.com/cgi-bin/webhook/send"
MAX_TEXT_BYTES = 2048     # WeCom group robot limit for text content
ERR_RATE_LIMITED = 45009  # "api freq out of limit"

# --------- small rate limiter (token bucket) ----------

class RateLimiter:
    def __init__(self, rate_per_sec: float, burst: int = 1):
        self.rate = float(rate_per_sec)
        self.capacity = int(burst)
        self.tokens = float(burst)
        self.updated = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self):
        async with self._lock:
            now = time.monotonic()
            self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
            self.updated = now
            if self.tokens < 1.0:
                needed = 1.0 - self.tokens
                await asyncio.sleep(needed / self.rate)
                self.updated = time.monotonic()
                self.tokens = 1.0
            self.tokens -= 1.0

# --------- message splitting ----------

def split_message(text: str, limit_bytes: int = MAX_TEXT_BYTES) -> list[str]:
    """
    Break text into chunks of at most limit_bytes UTF-8 bytes, preferring
    blank-line boundaries, then line boundaries, then raw characters.
    """
    if len(text.encode("utf-8")) <= limit_bytes:
        return [text]

    def fits(s: str) -> bool:
        return len(s.encode("utf-8")) <= limit_bytes

    # (separator that preceded the piece in the original text, piece)
    pieces: list[tuple[str, str]] = []
    for b, block in enumerate(text.split("\n\n")):
        sep = "\n\n" if b else ""
        if fits(block):
            pieces.append((sep, block))
            continue
        for i, line in enumerate(block.split("\n")):
            if i:
                sep = "\n"
            while not fits(line):
                cut = limit_bytes
                while cut > 1 and not fits(line[:cut]):
                    cut -= 1
                pieces.append((sep, line[:cut]))
                sep = ""
                line = line[cut:]
            pieces.append((sep, line))

    chunks: list[str] = []
    current: Optional[str] = None
    for sep, piece in pieces:
        if current is None:
            current = piece
            continue
        candidate = current + sep + piece
        if fits(candidate):
            current = candidate
        else:
            if current:
                chunks.append(current)
            current = piece
    if current:
        chunks.append(current)
    return chunks

# --------- config & client ----------

@dataclass(slots=True)
class WeComConfig:
    key: str
    url: str = WEBHOOK_URL
    timeout_s: float = 8.0
    rate_per_sec: float = 20 / 60.0   # documented robot limit: 20 msgs/min
    burst: int = 3
    retry: RetryPolicy = field(default_factory=RetryPolicy)


class WeComNotifier:
    """
    WeCom (企业微信) group robot sink. Posts plain-text messages with rate
    limiting and retry w/ backoff; raises NotificationError once retries run out.
    """
    def __init__(self, cfg: WeComConfig, session: Optional[aiohttp.ClientSession] = None):
        self.cfg = cfg
        self._session = session
        self._owns_session = session is None
        self._rl = RateLimiter(rate_per_sec=cfg.rate_per_sec, burst=cfg.burst)

    async def start(self):
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def stop(self):
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def send(self, text: str) -> None:
        if self._session is None:
            await self.start()
        for chunk in split_message(text):
            await self._rl.acquire()
            await self._post(chunk)

    async def _post(self, text: str) -> None:
        assert self._session is not None
        payload = {"msgtype": "text", "text": {"content": text}}
        params = {"key": self.cfg.key}

        delays = self.cfg.retry.jittered()
        attempt = 0
        while True:
            attempt += 1
            retryable, reason = await self._post_once(params, payload, attempt)
            if reason is None:
                return
            if not retryable:
                raise NotificationError(reason)
            delay = next(delays, None)
            if delay is None:
                log.error("wecom_give_up_after_retries", attempts=attempt, reason=reason)
                raise NotificationError(f"gave up after {attempt} attempts: {reason}")
            await asyncio.sleep(delay)

    async def _post_once(self, params: dict, payload: dict, attempt: int) -> tuple[bool, Optional[str]]:
        """(retryable, failure reason); reason None means delivered."""
        try:
            async with self._session.post(self.cfg.url, params=params, json=payload) as resp:
                if resp.status != 200:
                    detail = await _maybe_text(resp)
                    log.warning("wecom_send_failed", status=resp.status, body=detail, attempt=attempt)
                    return (500 <= resp.status < 600 or resp.status == 429), f"HTTP {resp.status}"
                try:
                    data = await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    data = {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("wecom_network_error", err=str(e), attempt=attempt)
            return True, f"network error: {e!s}"

        errcode = int(data.get("errcode", 0) or 0)
        if errcode == 0:
            return False, None
        errmsg = data.get("errmsg", "")
        log.warning("wecom_api_error", errcode=errcode, errmsg=errmsg, attempt=attempt)
        return errcode == ERR_RATE_LIMITED, f"errcode {errcode}: {errmsg}"


async def _maybe_text(resp: aiohttp.ClientResponse) -> str:
    try:
        return await resp.text()
    except Exception:
        return "<no body>"
