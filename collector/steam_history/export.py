"""取引・集計の CSV / JSON 書き出し."""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import asdict
from datetime import date, datetime

from steam_history.hovers import ItemDescriptionCache
from steam_history.models import Listing, listing_to_record
from steam_history.money import Currency, format_money
from steam_history.totals import Total

logger = logging.getLogger(__name__)

LISTING_COLUMNS = (
    "index",
    "transaction_id",
    "date_acted",
    "date_listed",
    "is_credit",
    "appid",
    "market_name",
    "market_hash_name",
    "price",
)
CURRENCY_FIELDS = ("price", "sale", "purchase")
FORMATS = ("csv", "json")


def listings_to_csv(
    listings: list[Listing],
    currency: Currency,
    descriptions: ItemDescriptionCache | None = None,
    language: str = "english",
) -> str:
    """取引を CSV にする. 金額は通貨表記、日付は YYYY-MM-DD.

    descriptions を渡すとアイテムの種類 (type 列) を追加する。
    """
    columns = list(LISTING_COLUMNS)
    if descriptions is not None:
        columns.append("type")

    rows = []
    for listing in listings:
        row = {column: getattr(listing, column) for column in LISTING_COLUMNS}
        row["market_name"] = listing.market_name or listing.market_hash_name
        if descriptions is not None:
            row["type"] = _item_type(descriptions, listing, language)
        rows.append(row)

    return _to_csv(columns, rows, currency)


def totals_to_csv(totals: list[Total], currency: Currency) -> str:
    """集計を CSV にする. 列は集計の種類ごとの項目に続けて合計と件数."""
    if not totals:
        return ""
    rows = [asdict(total) for total in totals]
    key_columns = [key for key in rows[0] if key not in asdict(Total())]
    columns = key_columns + ["sale", "sale_count", "purchase", "purchase_count"]
    return _to_csv(columns, rows, currency)


def listings_to_json(listings: list[Listing], currency: Currency, steamid: str) -> str:
    """取引を JSON にする. 金額は最小通貨単位の整数のまま、通貨情報を添える."""
    items = [listing_to_record(listing, steamid) for listing in listings]
    return json.dumps(
        {"currency": asdict(currency), "items": items},
        ensure_ascii=False,
        indent=2,
    )


def totals_to_json(totals: list[Total], currency: Currency) -> str:
    items = [asdict(total) for total in totals]
    return json.dumps(
        {"currency": asdict(currency), "items": items},
        ensure_ascii=False,
        indent=2,
        default=_json_default,
    )


def _to_csv(columns: list[str], rows: list[dict], currency: Currency) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: _cell(column, row.get(column), currency) for column in columns})
    return buffer.getvalue()


def _cell(column: str, value, currency: Currency):
    if value is None:
        return ""
    if column in CURRENCY_FIELDS:
        return format_money(value, currency)
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, bool):
        return "sale" if value else "purchase"
    return value


def _item_type(descriptions: ItemDescriptionCache, listing: Listing, language: str) -> str:
    if not listing.classid:
        return ""
    item = descriptions.get(listing.appid, listing.classid, listing.instanceid, language)
    return item.get("type") or ""


def _json_default(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
