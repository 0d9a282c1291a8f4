from decimal import Decimal

import pytest

from fundwatch.ingest import parser
from fundwatch.utils.types import Quote
from tests.helpers.fake_http import jsonp, sina_row


def test_parse_row_to_decimal_quote():
    q = parser.parse_quote_row(sina_row("159973", "民企ETF", "1.234", "1.200", "1.190"))
    assert isinstance(q, Quote)
    assert q.code == "159973" and q.symbol == "sz159973" and q.name == "民企ETF"
    assert q.trade == Decimal("1.234")
    assert q.open == Decimal("1.200")
    assert q.prior_close == Decimal("1.190")
    assert q.volume == 1200 and q.tick_time == "10:31:02"


def test_parse_numeric_prices_keep_printed_value():
    q = parser.parse_quote_row(sina_row("1", "n", 0.1, 0.2, 0.3))
    assert q.trade == Decimal("0.1")


def test_parse_non_finite_volume_falls_back_to_zero():
    q = parser.parse_quote_row(sina_row("4", "n", "1.0", "1.0", "1.0", volume="inf", amount="-Infinity"))
    assert q is not None
    assert q.volume == 0 and q.amount == 0


def test_parse_unusable_rows_return_none():
    assert parser.parse_quote_row({"name": "no code"}) is None
    assert parser.parse_quote_row(sina_row("2", "n", "", "1", "1")) is None
    assert parser.parse_quote_row(sina_row("3", "n", "abc", "1", "1")) is None


def test_extract_jsonp_array():
    rows = parser.extract_jsonp_array(jsonp([sina_row("1", "a", "1", "1", "1"), sina_row("2", "b", "1", "1", "1")]))
    assert [r["code"] for r in rows] == ["1", "2"]


@pytest.mark.parametrize("body", [jsonp([]), "IO.XSRV2.CallbackList['x'](null);", "null"])
def test_extract_empty_payloads(body):
    assert parser.extract_jsonp_array(body) == []


def test_extract_garbage_raises():
    with pytest.raises(parser.PayloadError):
        parser.extract_jsonp_array("<html>blocked</html>")
    with pytest.raises(parser.PayloadError):
        parser.extract_jsonp_array("cb([{not json}]);")
