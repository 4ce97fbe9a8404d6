"""購入履歴 (ウォレット履歴) の解析モジュール."""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, Tag

from steam_history.errors import FatalParseError
from steam_history.localization import Localization
from steam_history.models import AccountTransaction, GameItem, TransactionType
from steam_history.money import Currency, parse_money

logger = logging.getLogger(__name__)

_COUNT_PATTERN = re.compile(r"^(\d+)? ?(.*)", re.DOTALL)
_TRANSID_PATTERN = re.compile(r"transid=(\d+)")


def parse_transactions(
    html: str, currency: Currency, localization: Localization
) -> list[AccountTransaction]:
    """購入履歴の HTML 断片から取引を抽出する.

    必要な要素が欠けた行が 1 つでもあれば全体を失敗とする。

    Raises:
        FatalParseError: 日付・金額・種別の要素が欠けている場合
    """
    soup = BeautifulSoup(f"<table>{html}</table>", "html.parser")
    transactions = [
        _parse_row(row, currency, localization)
        for row in soup.select(".wallet_table_row")
    ]
    logger.debug("購入履歴解析: %d 件", len(transactions))
    return transactions


def _parse_row(row: Tag, currency: Currency, localization: Localization) -> AccountTransaction:
    type_el = row.select_one(".wht_type")
    count_el = _first_child(type_el) if type_el is not None else None
    total_el = row.select_one(".wht_total")
    date_el = row.select_one(".wht_date")
    items_el = row.select_one(".wht_items")

    if count_el is None or total_el is None or date_el is None:
        raise FatalParseError("Invalid transaction row")

    count, transaction_type = _count_and_type(count_el.get_text(strip=True), localization)
    price_el = _first_child(total_el) or total_el
    price_text = price_el.get_text(strip=True)
    # 入金 (wth_payment) または返金は credit
    is_credit = (
        total_el.select_one(".wth_payment") is not None
        or transaction_type == TransactionType.REFUND
    )

    return AccountTransaction(
        transaction_id=_transaction_id(row),
        transaction_type=transaction_type,
        date=localization.parse_full_date(date_el.get_text(strip=True)),
        count=count,
        price=parse_money(price_text, currency),
        price_raw=price_text,
        is_credit=is_credit,
        items=_parse_items(items_el) if items_el is not None else [],
    )


def _count_and_type(text: str, localization: Localization) -> tuple[int, TransactionType | None]:
    """"22 Market Transactions" のような表記から件数と種別を取り出す."""
    match = _COUNT_PATTERN.match(text)
    count = int(match.group(1)) if match.group(1) else 1
    return count, localization.transaction_type(match.group(2))


def _parse_items(items_el: Tag) -> list[GameItem]:
    """取引に含まれる明細. 先頭の子要素がアプリ名."""
    payments = items_el.select(".wth_payment")
    if not payments:
        return []

    app_el = _first_child(items_el)
    app = app_el.get_text(strip=True) if app_el is not None else ""

    items = []
    for item_el in payments:
        match = _COUNT_PATTERN.match(item_el.get_text(strip=True))
        items.append(GameItem(
            app=app,
            count=int(match.group(1)) if match.group(1) else 1,
            name=match.group(2),
        ))
    return items


def _transaction_id(row: Tag) -> str | None:
    match = _TRANSID_PATTERN.search(row.get("onclick") or "")
    return match.group(1) if match else None


def _first_child(el: Tag) -> Tag | None:
    return el.find(True, recursive=False)
