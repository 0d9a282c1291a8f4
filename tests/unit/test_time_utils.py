from datetime import date, datetime, timezone

import pytest

from fundwatch.utils.time import market_day, utc_now

def test_market_day_in_shanghai():
    late_utc = datetime(2024, 1, 1, 16, 30, tzinfo=timezone.utc)  # 00:30 next day in Shanghai
    assert market_day(late_utc) == date(2024, 1, 2)
    assert market_day(late_utc, "UTC") == date(2024, 1, 1)

def test_market_day_rejects_naive():
    with pytest.raises(ValueError):
        market_day(datetime(2024, 1, 1, 12, 0))

def test_utc_now_is_aware():
    assert utc_now().tzinfo is timezone.utc
