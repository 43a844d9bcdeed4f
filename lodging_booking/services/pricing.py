"""Stay pricing: nights × nightly rate, plus a caller-supplied tax policy."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

CENT = Decimal("0.01")

TaxPolicy = Callable[[Decimal], Decimal]


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_tax(rate: Decimal) -> TaxPolicy:
    """
    Build a tax policy charging a flat percentage of the subtotal.

    Args:
        rate: Fraction of the subtotal, e.g. Decimal("0.08") for 8%.

    Returns:
        TaxPolicy: Callable mapping subtotal to tax.
    """
    if rate < 0:
        raise ValueError("tax rate must be non-negative")

    def _tax(subtotal: Decimal) -> Decimal:
        return subtotal * rate

    return _tax


def no_tax(subtotal: Decimal) -> Decimal:
    return Decimal("0")


@dataclass(frozen=True)
class Quote:
    nights: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def quote_stay(nightly_rate: Decimal, nights: int, tax_policy: TaxPolicy) -> Quote:
    """
    Price a stay.

    Args:
        nightly_rate: Unit's nightly rate.
        nights: Whole nights between check-in and check-out.
        tax_policy: Policy returning the tax owed on a subtotal.

    Returns:
        Quote: Subtotal, tax and total rounded to cents.
    """
    subtotal = to_money(Decimal(nightly_rate) * nights)
    tax = to_money(Decimal(tax_policy(subtotal)))
    if tax < 0:
        raise ValueError("tax policy returned a negative amount")
    return Quote(nights=nights, subtotal=subtotal, tax=tax, total=subtotal + tax)
