from decimal import Decimal

import pytest

from vault_sync.domain.models import format_units, parse_units


def test_format_units_usdc():
    assert format_units(1_500_000) == Decimal("1.5")
    assert format_units(1, decimals=6) == Decimal("0.000001")


def test_format_units_ether_decimals():
    assert format_units(10**18, decimals=18) == Decimal("1")


def test_parse_units():
    assert parse_units("1.5") == 1_500_000
    assert parse_units(" 250 ", decimals=2) == 25_000


@pytest.mark.parametrize("text", ["abc", "", "1.0000001", "NaN"])
def test_parse_units_rejects_bad_input(text):
    with pytest.raises(ValueError):
        parse_units(text)
