"""Quote financials.

- Each line total is rounded to cents before summation
- GST is a fixed share of the subtotal, rounded to cents
- Nothing here validates sign or range; that is the caller's job
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from quote_service.config import QuotePolicy
from quote_service.errors import InvalidRequestError
from quote_service.models import Category, Defect, GrossProfit, LineItem, QuoteTotals

GST_RATE = 0.10
CENTS = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def line_total(item: LineItem) -> Decimal:
    return _money(_dec(item.quantity) * _dec(item.sell_price))


def format_quantity(quantity: float) -> str:
    """Plain decimal text with no exponent and no trailing zeros."""
    return format(_dec(quantity).normalize(), "f")


def compute_totals(items: Iterable[LineItem], tax_rate: float = GST_RATE) -> QuoteTotals:
    """Derive subtotal, GST and total from line items."""
    subtotal = _money(sum((line_total(item) for item in items), Decimal("0")))
    gst = _money(subtotal * _dec(tax_rate))
    total = _money(subtotal + gst)
    return QuoteTotals(subtotal=float(subtotal), gst=float(gst), total=float(total))


def gross_profit(items: Sequence[LineItem], policy: QuotePolicy | None = None) -> GrossProfit:
    """Margin of sell over cost, as shown beside the quote totals."""
    policy = policy or QuotePolicy()
    subtotal = sum((line_total(item) for item in items), Decimal("0"))
    cost = sum((_money(_dec(i.quantity) * _dec(i.cost_price)) for i in items), Decimal("0"))
    margin = subtotal - cost
    percent = (margin / subtotal * 100) if subtotal > 0 else Decimal("0")
    return GrossProfit(
        total_cost=float(_money(cost)),
        margin=float(_money(margin)),
        percent=round(float(percent), 1),
        on_target=percent >= _dec(policy.gp_target) * 100,
    )


def collate(items: Sequence[LineItem]) -> list[LineItem]:
    """Collapse every line into a single labour line carrying the full price."""
    if not items:
        return []
    descriptions = [i.description.strip() for i in items if i.description and i.description.strip()]
    price = sum((_dec(i.quantity) * _dec(i.sell_price) for i in items), Decimal("0"))
    return [
        LineItem(
            category=Category.LABOUR,
            description="; ".join(descriptions) or "Works as quoted",
            quantity=1,
            sell_price=float(price),
        )
    ]


def items_from_defects(defects: Iterable[Defect], policy: QuotePolicy | None = None) -> list[LineItem]:
    """One labour line per defect, priced at the standard labour rate."""
    policy = policy or QuotePolicy()
    return [
        LineItem(
            category=Category.LABOUR,
            description=f"{d.crane_name} - {d.item_label}: {d.recommended_action or d.notes or d.defect_type}",
            quantity=1,
            cost_price=policy.labour_cost_rate,
            sell_price=policy.labour_sell_rate,
        )
        for d in defects
    ]


def validate_for_send(items: Sequence[LineItem]) -> None:
    if not items:
        raise InvalidRequestError("Add at least one line item")
    if any(not item.description.strip() for item in items):
        raise InvalidRequestError("All line items need a description")
