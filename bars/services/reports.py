from datetime import datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.orm import Session

from bars.models.core import Order, OrderItem, OrderStatus, Product, Report

PERIODS = ("day", "week", "month", "year", "custom")
SOLD_STATUSES = (OrderStatus.PAID, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED)


def _money(x) -> float:
    return float(Decimal(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _start(d) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _end(d) -> datetime:
    return datetime.combine(d, time.max, tzinfo=timezone.utc)


def _parse_day(value: str | None):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def date_range(period: str, frm: str | None = None, to: str | None = None,
               now: datetime | None = None) -> tuple[datetime, datetime]:
    """Inclusive [from, to] bounds for a report period; weeks run Monday to Sunday."""
    today = (now or datetime.now(timezone.utc)).date()
    if period == "week":
        monday = today - timedelta(days=today.weekday())
        return _start(monday), _end(monday + timedelta(days=6))
    if period == "month":
        first = today.replace(day=1)
        nxt = (first + timedelta(days=32)).replace(day=1)
        return _start(first), _end(nxt - timedelta(days=1))
    if period == "year":
        return _start(today.replace(month=1, day=1)), _end(today.replace(month=12, day=31))
    if period == "custom":
        f = _parse_day(frm) or today
        t = _parse_day(to) or today
        if f > t:
            f, t = t, f
        return _start(f), _end(t)
    return _start(today), _end(today)


def build_sales_report(db: Session, tenant_id: str, period: str | None, frm: str | None = None,
                       to: str | None = None, creator_id: str | None = None,
                       now: datetime | None = None) -> Report:
    period = period if period in PERIODS else "day"
    start, end = date_range(period, frm, to, now=now)

    rows = (
        db.query(OrderItem, Product)
          .join(Order, Order.id == OrderItem.order_id)
          .join(Product, Product.id == OrderItem.product_id)
          .filter(Order.tenant_id == tenant_id,
                  Order.status.in_(SOLD_STATUSES),
                  Order.created_at >= start,
                  Order.created_at <= end)
          .all()
    )

    by_product: dict[str, dict] = {}
    revenue_total = Decimal("0")
    sold_total = 0
    for item, product in rows:
        revenue = Decimal(str(item.unit_price)) * item.quantity
        revenue_total += revenue
        sold_total += item.quantity
        entry = by_product.setdefault(product.id, {
            "product_id": product.id,
            "name": product.name,
            "category": product.category,
            "unit_price": _money(product.price),
            "sold_qty": 0,
            "revenue": Decimal("0"),
            "stock_remaining": product.stock_quantity,
        })
        entry["sold_qty"] += item.quantity
        entry["revenue"] += revenue

    items = sorted(by_product.values(), key=lambda e: (-e["revenue"], e["name"]))
    for e in items:
        e["revenue"] = _money(e["revenue"])

    data = {
        "items": items,
        "totals": {
            "total_revenue": _money(revenue_total),
            "total_items_sold": sold_total,
            "product_count": len(items),
            "from": start.isoformat(),
            "to": end.isoformat(),
            "period": period,
        },
    }
    report = Report(
        tenant_id=tenant_id,
        title=f"Report {period} ({start.date().isoformat()} - {end.date().isoformat()})",
        period=period, start_date=start, end_date=end, data=data, creator_id=creator_id,
    )
    db.add(report)
    db.commit()
    return report
