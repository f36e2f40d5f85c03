"""
Merchant Analytics

Revenue and best-seller figures for one canteen, computed with pandas
from the order snapshots:
- merchant_summary: revenue, order count, average value, last 7 days, top 5 items
- popular_items: the 3 most delivered menu items

Only delivered orders count towards revenue and item sales. Days are
bucketed by the UTC date of ``created_at``.

Version: 1.0.0
"""

from datetime import date, timedelta
from typing import Any

import pandas as pd

from canteen.models import OrderStatus

ITEM_COLUMNS = ["item_id", "quantity", "unit_price"]


def _merchant_frame(orders: list[dict[str, Any]], merchant_id: str) -> pd.DataFrame:
    df = pd.DataFrame(orders, columns=["merchant_id", "status", "total_amount", "created_at", "line_items"])
    df = df[df["merchant_id"] == merchant_id].copy()
    df["total_amount"] = pd.to_numeric(df["total_amount"], errors="coerce").fillna(0.0)
    created = pd.to_datetime(df["created_at"], utc=True, errors="coerce", format="ISO8601")
    df["created_date"] = created.dt.date
    return df


def _delivered(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["status"] == OrderStatus.DELIVERED.value]


def _item_sales(delivered: pd.DataFrame) -> pd.DataFrame:
    """Per-item sold quantity and revenue, best sellers first."""
    rows = [item for items in delivered["line_items"] for item in (items or [])]
    items = pd.DataFrame(rows, columns=ITEM_COLUMNS)
    if items.empty:
        return pd.DataFrame(columns=["sold_count", "revenue"])

    items["revenue"] = items["quantity"] * items["unit_price"]
    sales = items.groupby("item_id", sort=False).agg(
        sold_count=("quantity", "sum"),
        revenue=("revenue", "sum"),
    )
    return sales.sort_values("sold_count", ascending=False, kind="stable")


def merchant_summary(
    orders: list[dict[str, Any]],
    menu: list[dict[str, Any]],
    merchant_id: str,
    today: date,
) -> dict[str, Any]:
    """Dashboard figures for ``merchant_id``."""
    df = _merchant_frame(orders, merchant_id)
    delivered = _delivered(df)

    total_revenue = float(delivered["total_amount"].sum())
    total_orders = int(len(df))
    # Delivered revenue over every order placed, as the dashboard has always shown it
    avg_order_value = total_revenue / total_orders if total_orders > 0 else 0.0

    daily = delivered.groupby("created_date")["total_amount"].sum()
    last_7_days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        last_7_days.append({
            "date": day.isoformat(),
            "revenue": float(daily.get(day, 0.0)),
        })

    menu_by_id = {item.get("id"): item for item in menu}
    top_items = []
    for item_id, row in _item_sales(delivered).head(5).iterrows():
        top_items.append({
            **menu_by_id.get(item_id, {"id": item_id}),
            "sold_count": int(row["sold_count"]),
            "revenue": float(row["revenue"]),
        })

    return {
        "total_revenue": total_revenue,
        "total_orders": total_orders,
        "avg_order_value": avg_order_value,
        "last_7_days": last_7_days,
        "top_items": top_items,
    }


def popular_items(
    orders: list[dict[str, Any]],
    menu: list[dict[str, Any]],
    merchant_id: str,
    limit: int = 3,
) -> list[dict[str, Any]]:
    """Menu entries of the most delivered items (unknown items skipped)."""
    sales = _item_sales(_delivered(_merchant_frame(orders, merchant_id)))
    menu_by_id = {item.get("id"): item for item in menu}

    return [
        menu_by_id[item_id]
        for item_id in sales.head(limit).index
        if item_id in menu_by_id
    ]
