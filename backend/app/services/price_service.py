"""
Price service - pure pricing functions
(base rate, interval, discount, tax flag) -> subtotal, discount, tax, total
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import List, Optional

from app.config import settings
from app.models.ontology import PaymentStatus
from app.services.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
ONE_DAY = timedelta(days=1)


def to_money(value) -> Decimal:
    """Quantize to the currency minor unit, round half up"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBreakdown:
    """Result of a price calculation; total == subtotal - discount + tax"""
    days: int
    base_rate: Decimal
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    apply_tax: bool

    def to_dict(self) -> dict:
        return {
            "days": self.days,
            "base_rate": str(self.base_rate),
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "tax": str(self.tax),
            "total": str(self.total),
            "apply_tax": self.apply_tax,
        }


def count_days(check_in: datetime, check_out: datetime) -> int:
    """Billable days: started days count as full days, never less than one"""
    return max(1, math.ceil((check_out - check_in) / ONE_DAY))


def calculate_price(
    base_rate: Decimal,
    check_in: datetime,
    check_out: datetime,
    discount: Decimal = ZERO,
    apply_tax: bool = False,
    tax_rate: Optional[Decimal] = None,
) -> PriceBreakdown:
    """
    Compute the price of one resource over an interval.

    The discount is capped at the subtotal. Tax is charged on the discounted
    amount and the minor-unit rounding is applied once, to the total; the tax
    reported is whatever makes total = subtotal - discount + tax hold exactly.
    """
    base_rate = Decimal(str(base_rate))
    discount = to_money(discount or 0)
    if base_rate < 0:
        raise ValidationError("Base rate cannot be negative", {"base_rate": str(base_rate)})
    if discount < 0:
        raise ValidationError("Discount cannot be negative", {"discount": str(discount)})

    rate = settings.TAX_RATE if tax_rate is None else Decimal(str(tax_rate))
    days = count_days(check_in, check_out)
    subtotal = to_money(base_rate * days)
    discount = min(discount, subtotal)
    net = subtotal - discount

    if apply_tax:
        total = to_money(net + net * rate)
    else:
        total = net
    tax = total - net

    return PriceBreakdown(
        days=days,
        base_rate=to_money(base_rate),
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=total,
        apply_tax=bool(apply_tax),
    )


def apportion(amount: Decimal, parts: int) -> List[Decimal]:
    """
    Split an amount evenly across parts in minor units.
    The remainder lands on the first part so the shares sum to the amount.
    """
    if parts < 1:
        raise ValidationError("Cannot apportion across zero resources")
    amount = to_money(amount or 0)
    share = (amount / parts).quantize(CENT, rounding=ROUND_DOWN)
    first = amount - share * (parts - 1)
    return [first] + [share] * (parts - 1)


def apportion_capped(amount: Decimal, caps: List[Decimal]) -> List[Decimal]:
    """
    Split an amount like apportion, but never give a part more than its cap.
    Whatever a capped part cannot take moves to the next parts with headroom,
    in order. The caller guarantees amount <= sum(caps).
    """
    caps = [to_money(cap) for cap in caps]
    shares = [min(share, cap) for share, cap in zip(apportion(amount, len(caps)), caps)]
    leftover = to_money(amount or 0) - sum(shares, ZERO)
    for i, cap in enumerate(caps):
        if leftover <= 0:
            break
        extra = min(leftover, cap - shares[i])
        shares[i] += extra
        leftover -= extra
    return shares


def balance_for(total: Decimal, paid: Decimal) -> Decimal:
    """Outstanding balance, floored at zero"""
    return max(ZERO, to_money(total) - to_money(paid))


def payment_status_for(paid: Decimal, total: Decimal) -> PaymentStatus:
    """PAID when nothing is outstanding, PARTIAL when something was paid, else PENDING"""
    paid = to_money(paid)
    if paid >= to_money(total):
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING
