"""Tests for wildcard pattern matching and pattern validation."""

from __future__ import annotations

import pytest

from corehub.exceptions import InvalidPatternError, ValidationError
from corehub.matching import has_wildcards, is_valid_pattern, matches, validate_pattern


@pytest.mark.parametrize(
    ("pattern", "value"),
    [
        ("payments.order.created", "payments.order.created"),
        ("payments.order.*", "payments.order.created"),
        ("payments.*", "payments.order.created"),
        ("*", "anything.at.all"),
        ("#", "anything.at.all"),
        ("#.order.#", "x.order.y"),
        ("#.created", "payments.order.created"),
        ("payments.#", "payments.order.created"),
        ("order*", "orderCreated"),
        ("*Created", "orderCreated"),
        ("payments.*.created", "payments.order.created"),
    ],
)
def test_matches(pattern: str, value: str) -> None:
    assert matches(pattern, value) is True


@pytest.mark.parametrize(
    ("pattern", "value"),
    [
        ("payments.order.created", "payments.order.updated"),
        ("payments.order.*", "billing.order.created"),
        ("#.order.#", "x.invoice.y"),
        ("order*", "invoiceCreated"),
        ("payments.order", "payments.order.created"),
    ],
)
def test_does_not_match(pattern: str, value: str) -> None:
    assert matches(pattern, value) is False


def test_star_matches_across_dots() -> None:
    assert matches("payments.*", "payments.order.created.v2") is True
    assert matches("a*c", "a.b.c") is True


def test_star_matches_empty_run() -> None:
    assert matches("orders.*", "orders.") is True
    assert matches("order*", "order") is True


def test_matching_is_case_insensitive() -> None:
    assert matches("orderCreated", "ordercreated") is True
    assert matches("Payments.Order.*", "payments.order.created") is True


def test_literal_and_wildcard_patterns_fold_case_alike() -> None:
    assert matches("straße.created", "STRASSE.CREATED") is True
    assert matches("straße.*", "STRASSE.CREATED") is True
    assert matches("#.STRASSE", "events.straße") is True


def test_regex_metacharacters_are_literal() -> None:
    assert matches("payments.order", "paymentsXorder") is False
    assert matches("a+b", "a+b") is True
    assert matches("a+b", "aab") is False


def test_none_never_matches() -> None:
    assert matches(None, "x") is False
    assert matches("x", None) is False


def test_has_wildcards() -> None:
    assert has_wildcards("a.*") is True
    assert has_wildcards("#.a") is True
    assert has_wildcards("a.b") is False


@pytest.mark.parametrize("pattern", ["#", "#.order", "order.#", "#.order.#", "a.b", "*.*"])
def test_valid_hash_placement(pattern: str) -> None:
    assert is_valid_pattern(pattern) is True
    assert validate_pattern(pattern) == pattern


@pytest.mark.parametrize("pattern", ["order.#.created", "a#b", "##x"])
def test_hash_in_the_middle_is_rejected(pattern: str) -> None:
    assert is_valid_pattern(pattern) is False
    with pytest.raises(InvalidPatternError) as exc_info:
        validate_pattern(pattern, "topic")
    assert exc_info.value.field == "topic"
    assert "topic" in exc_info.value.errors


def test_invalid_pattern_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        validate_pattern("a.#.b")
