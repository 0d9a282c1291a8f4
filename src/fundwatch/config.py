# src/fundwatch/config.py
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fundwatch.ingest.sina import FUND_NODES
from fundwatch.utils.time import MARKET_TZ


class ConfigError(Exception):
    """Startup configuration is unusable."""


@dataclass(frozen=True, slots=True)
class AppConfig:
    codes: str                       # raw rule list "code-up-down,..."
    interval_s: float = 30.0
    fund_classes: tuple[str, ...] = ("etf", "lof")
    wecom_key: Optional[str] = None
    market_tz: str = MARKET_TZ
    state_keep_days: int = 2
    styled_digits: bool = True
    startup_ping: bool = True
    sina_page_size: int = 1000
    http_timeout_s: float = 10.0


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for n in names:
        v = env.get(n)
        if v is not None and v.strip() != "":
            return v.strip()
    return None


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _number(raw: Optional[str], name: str, default, cast, minimum):
    if raw is None:
        return default
    try:
        v = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(v):
        raise ConfigError(f"{name} must be finite, got {raw!r}")
    if v < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {raw!r}")
    return v


def config_from_env(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Read settings from the environment (after load_dotenv()).
    The legacy names SECOND / WXKEY from the container image are honored.
    Raises ConfigError on anything that should stop startup.
    """
    env = os.environ if env is None else env

    codes = _first(env, "CODES")
    if not codes:
        raise ConfigError("CODES is required, e.g. CODES=159973-0.10-0.05,511130-0.10-0.05")

    classes_raw = _first(env, "FUND_CLASSES") or "etf,lof"
    classes = tuple(c.strip().lower() for c in classes_raw.split(",") if c.strip())
    unknown = [c for c in classes if c not in FUND_NODES]
    if unknown or not classes:
        raise ConfigError(f"FUND_CLASSES must be a subset of {sorted(FUND_NODES)}, got {classes_raw!r}")

    tz = _first(env, "MARKET_TZ") or MARKET_TZ
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"unknown MARKET_TZ {tz!r}") from None

    return AppConfig(
        codes=codes,
        interval_s=_number(_first(env, "INTERVAL_SECONDS", "SECOND"), "INTERVAL_SECONDS", 30.0, float, 1.0),
        fund_classes=classes,
        wecom_key=_first(env, "WECOM_KEY", "WXKEY"),
        market_tz=tz,
        state_keep_days=_number(_first(env, "STATE_KEEP_DAYS"), "STATE_KEEP_DAYS", 2, int, 1),
        styled_digits=_flag(_first(env, "STYLED_DIGITS"), True),
        startup_ping=_flag(_first(env, "STARTUP_PING"), True),
        sina_page_size=_number(_first(env, "SINA_PAGE_SIZE"), "SINA_PAGE_SIZE", 1000, int, 1),
        http_timeout_s=_number(_first(env, "HTTP_TIMEOUT_S"), "HTTP_TIMEOUT_S", 10.0, float, 0.1),
    )
