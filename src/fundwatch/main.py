# src/fundwatch/main.py
import asyncio
import signal

import structlog
from dotenv import load_dotenv

from fundwatch.config import ConfigError, config_from_env

# Alerts (ladder ratchet, per-day state)
from fundwatch.alerts.rules import parse_rules
from fundwatch.alerts.state import AlertStateStore
from fundwatch.alerts.notifiers import ConsoleNotifier, FanoutNotifier
from fundwatch.cycle import CycleConfig, CycleOrchestrator

# Quote source
from fundwatch.ingest.sina import SinaConfig, SinaQuoteSource

# WeCom notifier (optional)
from fundwatch.notify.wecom import WeComConfig, WeComNotifier

load_dotenv()
log = structlog.get_logger()


# ---------------------------
# WeCom startup ping helper
# ---------------------------

async def wecom_startup_ping(notifier: WeComNotifier, codes: list[str]):
    try:
        await notifier.send(f"✅ Fund monitor started, watching {len(codes)} codes: {', '.join(codes)}")
    except Exception as e:
        log.warning("wecom_startup_ping_failed", err=str(e))


# ---------------------------
# Main
# ---------------------------

async def main() -> int:
    try:
        cfg = config_from_env()
    except ConfigError as e:
        log.error("config_invalid", err=str(e))
        return 2

    rules, problems = parse_rules(cfg.codes)
    if not rules:
        log.error("no_valid_rules", dropped=len(problems))
        return 2
    log.info("rules_loaded", rules=len(rules), dropped=len(problems))

    source = SinaQuoteSource(SinaConfig(page_size=cfg.sina_page_size, timeout_s=cfg.http_timeout_s))

    # ----- Notifications -----
    sinks = [ConsoleNotifier()]
    wecom = None
    if cfg.wecom_key:
        wecom = WeComNotifier(WeComConfig(key=cfg.wecom_key, timeout_s=cfg.http_timeout_s))
        sinks.append(wecom)
        log.info("wecom_enabled")
    else:
        log.info("wecom_disabled_missing_key")

    orchestrator = CycleOrchestrator(
        source=source,
        notifier=FanoutNotifier(sinks),
        rules=rules,
        store=AlertStateStore(tz_name=cfg.market_tz),
        cfg=CycleConfig(
            interval_s=cfg.interval_s,
            fund_classes=cfg.fund_classes,
            state_keep_days=cfg.state_keep_days,
            styled_digits=cfg.styled_digits,
        ),
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.request_stop)
        except NotImplementedError:
            # e.g. Windows; KeyboardInterrupt still ends the run
            pass

    await source.start()
    if wecom is not None:
        await wecom.start()
        if cfg.startup_ping:
            await wecom_startup_ping(wecom, [r.code for r in rules])

    try:
        await orchestrator.start()
    finally:
        # graceful shutdown to avoid unclosed sessions
        await source.stop()
        if wecom is not None:
            await wecom.stop()
    return 0


def run() -> None:
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        code = 0
    raise SystemExit(code)


if __name__ == "__main__":
    run()
