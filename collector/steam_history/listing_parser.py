"""マーケット履歴ページの解析モジュール.

/market/myhistory のレスポンスは JSON で、行は results_html に HTML として、
行とアイテムの対応は hovers に JS 呼び出しの文字列として埋め込まれている。

行は新しい順に並ぶ。index は古いものほど小さくなるように
total_count - (start + 行位置) で振る。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from bs4 import BeautifulSoup, Tag

from steam_history.errors import AssetMissingError, FatalParseError, RetryableFetchError
from steam_history.localization import Localization
from steam_history.models import (
    LISTING_REQUIRED_FIELDS,
    DateCursor,
    Listing,
    LoadState,
    ParsedDate,
)
from steam_history.money import Currency, parse_money

logger = logging.getLogger(__name__)

_ROW_ID_PREFIX = "history_row_"

# アセットから取り出す項目
_ASSET_KEYS = (
    "classid",
    "instanceid",
    "name",
    "market_name",
    "market_hash_name",
    "name_color",
    "background_color",
    "icon_url",
)

_HOVER_TEMPLATE = (
    r"CreateItemHoverFromContainer\(\s*g_rgAssets\s*,\s*'{row_id}_image'\s*,"
    r"\s*(\d+)\s*,\s*'(\d+)'\s*,\s*'(\d+)'\s*,\s*(\d+)\s*\);"
)


@dataclass
class ListingParseResult:
    """1 ページ分の解析結果."""

    records: list[Listing]
    date_cursor: DateCursor


def parse_listings(
    response: dict,
    state: LoadState,
    currency: Currency,
    localization: Localization,
    now: datetime | None = None,
) -> ListingParseResult:
    """履歴ページから取引を抽出する.

    Args:
        response: /market/myhistory のレスポンス JSON
        state: 読み込み状態 (既取得の境界と基準日)
        currency: 価格文字列の解析に使う通貨
        localization: 日付文字列の解析に使うロケール
        now: 現在時刻 (テスト用)

    Returns:
        取引のリストと更新後の基準日。state は変更しない。

    Raises:
        RetryableFetchError: Steam 側のメッセージ表示など、再試行で解決しうるもの
        FatalParseError: 件数 0、欠損データなど。部分的な保存は行わない
    """
    soup = BeautifulSoup(response.get("results_html") or "", "html.parser")
    _validate_response(response, soup)

    total_count = response["total_count"]
    start = response.get("start") or 0
    assets = response.get("assets") or {}
    hovers = response.get("hovers") or ""

    rows = _collect_rows(soup.select(".market_listing_row"), state, total_count, start)

    now = now or datetime.now()
    # タイムゾーン差を吸収するため明日までは許容する
    tomorrow = _make_date(now.year, now.month - 1, now.day + 1)
    cursor = state.date
    parsed_rows: list[dict] = []

    for index, row in rows:
        data = _row_to_dict(index, row, assets, hovers, currency)
        data["date_acted"], data["date_listed"], cursor = _resolve_dates(
            data["date_acted_raw"], data["date_listed_raw"], cursor, localization, tomorrow
        )
        parsed_rows.append(data)

    for data in parsed_rows:
        if any(data.get(key) is None for key in LISTING_REQUIRED_FIELDS):
            # 不完全なデータは保存しない
            raise FatalParseError("Invalid listing data")

    records = [Listing(**data) for data in parsed_rows]
    logger.debug("解析: start=%d, 行=%d, 取引=%d", start, len(rows), len(records))
    return ListingParseResult(records=records, date_cursor=cursor)


def _validate_response(response: dict, soup: BeautifulSoup) -> None:
    """Steam 側のメッセージ表示やアセット欠損を検出する."""
    message_el = soup.select_one(".market_listing_table_message")
    total_count = response.get("total_count")
    assets = response.get("assets")
    has_broken_assets = _has_broken_assets(assets)

    has_error = bool(
        message_el is not None
        or not total_count
        or has_broken_assets
        or assets is None
    )
    if not has_error:
        return

    message = message_el.get_text(strip=True) if message_el is not None else ""
    # リンク付きのメッセージ、または件数 0 は再試行しても変わらない
    fatal = bool((message_el is not None and message_el.find("a")) or total_count == 0)

    error = message or "No listings"
    if not message and has_broken_assets:
        error = "Missing data"

    if fatal:
        raise FatalParseError(error)
    raise RetryableFetchError(error)


def _has_broken_assets(assets) -> bool:
    """market_hash_name が欠けたアセットがあるか (まれに発生する)."""
    if not isinstance(assets, dict):
        return False

    for contexts in assets.values():
        if not isinstance(contexts, dict):
            continue
        for items in contexts.values():
            if not isinstance(items, dict):
                continue
            for asset in items.values():
                if not asset.get("market_hash_name"):
                    return True
    return False


def _collect_rows(
    rows: list[Tag], state: LoadState, total_count: int, start: int
) -> list[tuple[int, Tag]]:
    """成立済みの行を index とともに集める.

    前回ループの先頭 (last_indexed) に達したら打ち切る。
    取得済みの行 (last / last_fetched) に達したら、そこまでに集めた行は捨てる。
    読み込み中の取引で既取得の行が後ろのページへ押し出された場合に起きる。
    """
    last_tx = state.last.transaction_id if state.last else None
    last_indexed_tx = state.last_indexed.transaction_id if state.last_indexed else None
    last_fetched_tx = state.last_fetched.transaction_id if state.last_fetched else None

    collected: list[tuple[int, Tag]] = []
    for i, row in enumerate(rows):
        if not _is_completed_transaction(row):
            continue

        transaction_id = _transaction_id(row)
        if last_indexed_tx is not None and transaction_id == last_indexed_tx:
            break
        if transaction_id in (last_tx, last_fetched_tx):
            collected = []
            continue

        collected.append((total_count - (start + i), row))

    return collected


def _is_completed_transaction(row: Tag) -> bool:
    """+/- の表示があり、返金 (取り消し線付きの価格) でない行."""
    gain_or_loss = row.select_one(".market_listing_gainorloss")
    if gain_or_loss is None or not gain_or_loss.get_text(strip=True):
        return False
    return row.select_one(".market_listing_price span") is None


def _transaction_id(row: Tag) -> str:
    return row.get("id", "").replace(_ROW_ID_PREFIX, "").replace("_", "-", 1)


def _row_to_dict(
    index: int, row: Tag, assets: dict, hovers: str, currency: Currency
) -> dict:
    gain_or_loss = row.select_one(".market_listing_gainorloss")
    price_el = row.select_one(".market_listing_price")
    date_els = row.select(".market_listing_listed_date")

    if price_el is None or len(date_els) < 2:
        raise FatalParseError("Invalid listing data")

    price_text = price_el.get_text(strip=True)
    appid, contextid, assetid = _get_hover(row.get("id", ""), hovers)

    data = {
        "transaction_id": _transaction_id(row),
        "index": index,
        # "-" はインベントリから出た = 売却
        "is_credit": gain_or_loss.get_text(strip=True) == "-",
        "appid": appid,
        "contextid": contextid,
        "assetid": assetid,
        "price": parse_money(price_text, currency),
        "price_raw": price_text,
        "date_acted_raw": date_els[0].get_text(strip=True),
        "date_listed_raw": date_els[1].get_text(strip=True),
    }

    asset = _get_asset(assets, appid, contextid, assetid)
    for key in _ASSET_KEYS:
        value = asset.get(key)
        if value is not None:
            data[key] = value

    # 色は大文字に統一
    for key in ("name_color", "background_color"):
        if data.get(key):
            data[key] = data[key].upper()

    return data


def _get_hover(row_id: str, hovers: str) -> tuple[str, str, str]:
    """hovers から行に対応する (appid, contextid, assetid) を取り出す."""
    pattern = _HOVER_TEMPLATE.format(row_id=re.escape(row_id))
    match = re.search(pattern, hovers)
    if not match:
        raise AssetMissingError(f"No hover for {row_id}")
    return match.group(1), match.group(2), match.group(3)


def _get_asset(assets: dict, appid: str, contextid: str, assetid: str) -> dict:
    try:
        return assets[appid][contextid][assetid]
    except (KeyError, TypeError) as e:
        raise AssetMissingError(f"Missing asset {appid}/{contextid}/{assetid}") from e


def _make_date(year: int, month: int, day: int) -> datetime:
    """UTC 正午の日時を作る. month は 0 始まりで、範囲外の月日は繰り上げる."""
    first = datetime(year + month // 12, month % 12 + 1, 1, 12, tzinfo=timezone.utc)
    return first + timedelta(days=day - 1)


def _resolve_dates(
    acted_raw: str,
    listed_raw: str,
    cursor: DateCursor,
    localization: Localization,
    tomorrow: datetime,
) -> tuple[datetime, datetime, DateCursor]:
    """年なしの日付に年を補う.

    古い方へ読み進めるため、日付は基準日から後退するか同じ日に留まる。
    基準日より後 (または明日より後) になった場合は年をまたいだとみなし 1 年戻す。
    出品日が取引日より後になることはないので、その場合も 1 年戻す。
    """
    parsed_acted = localization.parse_date_string(acted_raw)
    parsed_listed = localization.parse_date_string(listed_raw)

    acted, year = _resolve_acted(parsed_acted, cursor, tomorrow)
    listed = _make_date(parsed_listed.year or year, parsed_listed.month, parsed_listed.day)
    if listed > acted:
        listed = _make_date(year - 1, parsed_listed.month, parsed_listed.day)

    next_cursor = DateCursor(year=year, month=parsed_acted.month, day=parsed_acted.day)
    return acted, listed, next_cursor


def _resolve_acted(
    parsed: ParsedDate, cursor: DateCursor, tomorrow: datetime
) -> tuple[datetime, int]:
    year = parsed.year or cursor.year
    last_date = _make_date(year, cursor.month, cursor.day or parsed.day)
    acted = _make_date(year, parsed.month, parsed.day)

    if parsed.year:
        return acted, parsed.year

    if acted > last_date or acted > tomorrow:
        year = cursor.year - 1
        acted = _make_date(year, parsed.month, parsed.day)
    return acted, year
