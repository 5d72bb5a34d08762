"""
Quote Pricing Calculator - priced totals for a quote's line items.

Pure math. No database, no HTTP.

Materials:
    unit_price  = purchase_price + margin
    billed_qty  = quantity                          if ignore_min_quantity
                = max(quantity, quote.min_quantity) otherwise
    line_total  = unit_price × billed_qty

Production activities (implicit quantity of 1):
    cost        = (work_time_hours + work_time_minutes / 60) × price
    unit_total  = cost + margin
    billed_qty  = 1                                 if ignore_min_quantity
                = max(1, quote.min_quantity)        otherwise
    line_total  = unit_total × billed_qty

Quote total = Σ material line totals + Σ activity line totals.
"""

from typing import Dict, List

from .numbers import to_number

MARGIN_PERCENT = "percent"
MARGIN_FIXED = "fixed"


class Margin:
    """
    Markup on a cost figure: either a percentage of the cost or a fixed
    amount added to it. One kind per instance.
    """

    KINDS = (MARGIN_PERCENT, MARGIN_FIXED)

    __slots__ = ("kind", "value")

    def __init__(self, kind: str, value=0.0):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown margin kind: {kind}. Expected one of {self.KINDS}")
        self.kind = kind
        self.value = to_number(value)

    @classmethod
    def percent(cls, value) -> "Margin":
        return cls(MARGIN_PERCENT, value)

    @classmethod
    def fixed(cls, value) -> "Margin":
        return cls(MARGIN_FIXED, value)

    def amount(self, cost: float) -> float:
        """Margin in currency for a given cost."""
        if self.kind == MARGIN_FIXED:
            return self.value
        return cost * self.value / 100.0

    def apply(self, cost: float) -> float:
        return cost + self.amount(cost)

    def percent_of(self, cost: float) -> float:
        """Equivalent percentage (0 when the cost is 0)."""
        if self.kind == MARGIN_PERCENT:
            return self.value
        return (self.value / cost) * 100.0 if cost > 0 else 0.0

    def to_dict(self) -> Dict:
        return {"kind": self.kind, "value": self.value}

    def __eq__(self, other):
        if not isinstance(other, Margin):
            return NotImplemented
        return self.kind == other.kind and self.value == other.value

    def __repr__(self):
        return f"Margin({self.kind!r}, {self.value!r})"


def margin_from_fields(margin_percent=None, margin_pln=None) -> Margin:
    """
    Pick the authoritative margin from the two stored figures.

    A non-zero fixed amount wins - stored quotes keep the fixed amount and
    derive the percentage from it. Otherwise the percentage applies.
    """
    if isinstance(margin_percent, Margin):
        return margin_percent
    fixed = to_number(margin_pln)
    if fixed != 0:
        return Margin.fixed(fixed)
    return Margin.percent(margin_percent)


def _line_margin(line: Dict) -> Margin:
    margin = line.get("margin")
    if isinstance(margin, Margin):
        return margin
    if isinstance(margin, dict) and margin.get("kind") in Margin.KINDS:
        return Margin(margin["kind"], margin.get("value"))
    return margin_from_fields(line.get("margin_percent"), line.get("margin_pln"))


def _clamp_minutes(value) -> float:
    return min(59.0, max(0.0, to_number(value)))


def activity_hours(activity: Dict) -> float:
    """Work time as decimal hours. Minutes are clamped to 0..59."""
    hours = max(0.0, to_number(activity.get("work_time_hours")))
    return hours + _clamp_minutes(activity.get("work_time_minutes")) / 60.0


def price_material(material: Dict, min_quantity=0) -> Dict:
    """Priced material line, billed for at least min_quantity unless exempt."""
    purchase = max(0.0, to_number(material.get("purchase_price")))
    margin = _line_margin(material)
    unit_margin = margin.amount(purchase)
    unit_price = purchase + unit_margin

    quantity = max(0.0, to_number(material.get("quantity")))
    ignore_min = bool(material.get("ignore_min_quantity"))
    if ignore_min:
        billed = quantity
    else:
        billed = max(quantity, max(0.0, to_number(min_quantity)))

    return {
        "name": material.get("name", ""),
        "purchase_price": round(purchase, 2),
        "margin": margin.to_dict(),
        "margin_percent": round(margin.percent_of(purchase), 4),
        "margin_pln": round(unit_margin, 2),
        "unit_price": round(unit_price, 2),
        "quantity": quantity,
        "billed_quantity": billed,
        "ignore_min_quantity": ignore_min,
        "purchase_total": round(purchase * billed, 2),
        "margin_total": round(unit_margin * billed, 2),
        "line_total": round(unit_price * billed, 2),
    }


def price_activity(activity: Dict, min_quantity=0) -> Dict:
    """
    Priced production activity.

    `price` is an hourly rate. With no work time entered it is charged as a
    flat per-unit rate instead.
    """
    rate = max(0.0, to_number(activity.get("price")))
    hours = activity_hours(activity)
    cost = hours * rate if hours > 0 else rate

    margin = _line_margin(activity)
    unit_margin = margin.amount(cost)
    unit_total = cost + unit_margin

    ignore_min = bool(activity.get("ignore_min_quantity"))
    if ignore_min:
        billed = 1.0
    else:
        billed = max(1.0, to_number(min_quantity))

    return {
        "name": activity.get("name", ""),
        "work_time_hours": hours,
        "price": round(rate, 2),
        "cost": round(cost, 2),
        "cost_per_hour": round(cost / hours, 2) if hours > 0 else 0.0,
        "margin": margin.to_dict(),
        "margin_percent": round(margin.percent_of(cost), 4),
        "margin_pln": round(unit_margin, 2),
        "unit_total": round(unit_total, 2),
        "billed_quantity": billed,
        "ignore_min_quantity": ignore_min,
        "cost_total": round(cost * billed, 2),
        "margin_total": round(unit_margin * billed, 2),
        "line_total": round(unit_total * billed, 2),
    }


def _sum(lines: List[Dict], key: str) -> float:
    return round(sum(line[key] for line in lines), 2)


def price_quote(quote: Dict) -> Dict:
    """
    Prices every line of a quote and returns the summary.

    Args:
        quote: {
            "min_quantity": number,
            "total_quantity": number,
            "materials": [material dicts],
            "production_activities": [activity dicts],
        }
    """
    min_quantity = max(0.0, to_number(quote.get("min_quantity")))
    total_quantity = max(0.0, to_number(quote.get("total_quantity")))

    materials = [price_material(m, min_quantity) for m in quote.get("materials") or []]
    activities = [
        price_activity(a, min_quantity) for a in quote.get("production_activities") or []
    ]

    material_total = _sum(materials, "line_total")
    production_total = _sum(activities, "line_total")
    total = round(material_total + production_total, 2)

    return {
        "min_quantity": min_quantity,
        "total_quantity": total_quantity,
        "materials": materials,
        "production_activities": activities,
        "material_purchase_total": _sum(materials, "purchase_total"),
        "material_margin_total": _sum(materials, "margin_total"),
        "material_total": material_total,
        "production_cost_total": _sum(activities, "cost_total"),
        "production_margin_total": _sum(activities, "margin_total"),
        "production_total": production_total,
        "total": total,
        "price_per_unit": round(total / max(total_quantity, 1.0), 2),
    }
