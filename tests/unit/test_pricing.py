"""Price normalization."""

from decimal import Decimal

import pytest

from app.providers.metadata.pricing import (
    currency_from_text,
    format_price,
    normalize_currency,
    parse_price_text,
    to_decimal,
)


class TestToDecimal:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (24.99, Decimal("24.99")),
            ("24.99", Decimal("24.99")),
            ("$1,299.00", Decimal("1299.00")),
            ("19,00 €", Decimal("19.00")),
            ("1.299,00", Decimal("1299.00")),
            (7, Decimal("7")),
        ],
    )
    def test_amounts(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize("value", [None, True, "", "free", 0, -5, "0.00", float("nan")])
    def test_not_an_amount(self, value):
        assert to_decimal(value) is None


class TestCurrency:

    def test_codes_win_over_symbols(self):
        assert currency_from_text("USD $24.99") == "USD"

    @pytest.mark.parametrize(
        "text, code",
        [("$24.99", "USD"), ("US$ 5", "USD"), ("CA$ 12", "CAD"), ("A$ 9", "AUD"), ("£30", "GBP"), ("€19", "EUR")],
    )
    def test_symbols(self, text, code):
        assert currency_from_text(text) == code

    def test_capital_words_are_not_codes(self):
        assert currency_from_text("NEW 24.99") is None

    def test_normalize_currency(self):
        assert normalize_currency(" usd ") == "USD"
        assert normalize_currency("$") is None
        assert normalize_currency(None) is None


class TestParsePriceText:

    def test_full_price(self):
        price = parse_price_text("$24.99")
        assert price.amount == Decimal("24.99")
        assert price.currency == "USD"
        assert price.formatted == "$24.99"

    def test_amount_and_currency_independent(self):
        assert parse_price_text("24.99").currency is None
        assert parse_price_text("EUR").amount is None

    def test_empty(self):
        assert parse_price_text(None).amount is None
        assert parse_price_text("   ").formatted is None

    def test_format_price(self):
        assert format_price(Decimal("24.99"), "USD") == "USD 24.99"
        assert format_price(None, "USD") is None
