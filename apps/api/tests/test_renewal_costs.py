from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from services.balances import MAX_AMOUNT, format_money, parse_amount
from services.ledger_errors import InvalidExpiry
from services.renewals import (
    extend_expiry,
    package_cost_delta,
    parse_duration_days,
    parse_expiry,
    renewal_cost,
)


def _package(package_id, cost):
    return SimpleNamespace(id=package_id, cost=Decimal(str(cost)))


def test_renewal_cost_is_flat_sum_of_package_costs():
    packages = [_package("a", 100), _package("b", 200)]
    assert renewal_cost(packages) == Decimal("300")


def test_renewal_cost_of_no_packages_is_zero():
    assert renewal_cost([]) == Decimal("0")


def test_package_cost_delta_downgrade_is_negative():
    current = [_package("basic", 100), _package("sports", 200)]
    catalog = {"basic": current[0], "movies": _package("movies", 150)}

    delta, added, removed = package_cost_delta(current, ["basic", "movies"], catalog)

    assert delta == Decimal("-50")
    assert added == ["movies"]
    assert removed == ["sports"]


def test_package_cost_delta_upgrade_counts_only_added_packages():
    current = [_package("basic", 100)]
    catalog = {"basic": current[0], "kids": _package("kids", 400)}

    delta, added, removed = package_cost_delta(current, ["basic", "kids"], catalog)

    assert delta == Decimal("400")
    assert added == ["kids"]
    assert removed == []


def test_package_cost_delta_same_set_is_zero():
    current = [_package("basic", 100), _package("sports", 200)]
    catalog = {package.id: package for package in current}

    delta, added, removed = package_cost_delta(current, ["sports", "basic"], catalog)

    assert delta == Decimal("0")
    assert added == [] and removed == []


def test_extend_expiry_from_future_expiry():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    current = now + timedelta(days=10)
    assert extend_expiry(current, 30, now=now) == current + timedelta(days=30)


def test_extend_expiry_from_now_when_already_expired():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    current = now - timedelta(days=10)
    assert extend_expiry(current, 30, now=now) == now + timedelta(days=30)


def test_extend_expiry_treats_naive_values_as_utc():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    naive_future = datetime(2026, 1, 5)
    assert extend_expiry(naive_future, 1, now=now) == datetime(2026, 1, 6, tzinfo=timezone.utc)


@pytest.mark.parametrize("value,expected", [(30, 30), ("7", 7), (1.0, 1)])
def test_parse_duration_days_accepts_positive_whole_numbers(value, expected):
    assert parse_duration_days(value) == expected


@pytest.mark.parametrize("value", [0, -5, None, "", "abc", 1.5, True, "NaN"])
def test_parse_duration_days_rejects_invalid_values(value):
    assert parse_duration_days(value) is None


def test_parse_expiry_accepts_zulu_suffix():
    assert parse_expiry("2026-03-01T00:00:00Z") == datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_parse_expiry_rejects_garbage():
    with pytest.raises(InvalidExpiry):
        parse_expiry("next tuesday")


@pytest.mark.parametrize("value,expected", [(1000, "₹1000"), (Decimal("12.5"), "₹12.50"), (0, "₹0")])
def test_format_money(value, expected):
    assert format_money(value) == expected


@pytest.mark.parametrize("value", [None, True, "", "ten", "Infinity", float("nan")])
def test_parse_amount_rejects_non_numeric(value):
    assert parse_amount(value) is None


def test_parse_amount_accepts_numeric_strings():
    assert parse_amount(" 250.5 ") == Decimal("250.50")


def test_parse_duration_days_caps_at_a_century():
    assert parse_duration_days(36500) == 36500
    assert parse_duration_days(36501) is None
    assert parse_duration_days("1e9") is None


def test_parse_amount_leaves_oversized_values_unrounded():
    assert parse_amount("1e30") == Decimal("1e30")
    assert parse_amount(1e30) > MAX_AMOUNT
    assert parse_amount("9999999999.99") == MAX_AMOUNT
