from __future__ import annotations

from typing import Iterable


class PricingError(ValueError):
    pass


def line_total(item) -> float:
    """
    Price of one line: quantity x unit price.

    `item` is anything exposing `quantity` and `unit_price` (a LineItem, or a LineItem under
    construction). Quantity/price validation is the caller's job; values that slip through
    here are programming errors.
    """
    quantity = item.quantity
    unit_price = item.unit_price
    if quantity < 1:
        raise PricingError(f"quantity must be >= 1 (got {quantity!r})")
    if unit_price < 0:
        raise PricingError(f"unit_price must be >= 0 (got {unit_price!r})")
    return quantity * unit_price


def grand_total(items: Iterable) -> float:
    # Tax rate and discount live on the draft but are deliberately not applied here.
    return sum((item.total for item in items), 0.0)


def budget_exceeded(items: Iterable, budget: float) -> bool:
    """
    Whether the quote total goes over the client's stated budget.

    A budget of 0 (or less) means "not stated" and never triggers the warning.
    """
    if not budget or budget <= 0:
        return False
    return grand_total(items) > budget


def format_money(amount: float, currency: str) -> str:
    symbol = getattr(currency, "value", currency)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
