"""テスト共通のフィクスチャ."""

from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest

from steam_history.localization import get_localization
from steam_history.models import Account, Listing
from steam_history.money import get_currency

STEAMID = "76561198000000000"


@pytest.fixture
def usd():
    return get_currency(1)


@pytest.fixture
def english():
    return get_localization("english")


@pytest.fixture
def account(usd):
    return Account(steamid=STEAMID, language="english", currency=usd, sessionid="abc123")


def _row_html(row: dict) -> str:
    row_id = f"history_row_{row['id']}"
    if row.get("refunded"):
        price = f'<span class="market_listing_price"><span>{row["price"]}</span></span>'
    else:
        price = f'<span class="market_listing_price">{row["price"]}</span>'
    return (
        f'<div class="market_listing_row market_recent_listing_row" id="{row_id}">'
        f'<div class="market_listing_left_cell market_listing_gainorloss">{row["gain"]}</div>'
        f'<img id="{row_id}_image" src="">'
        f'<div class="market_listing_right_cell market_listing_their_price">'
        f'<span class="market_table_value">{price}</span></div>'
        f'<div class="market_listing_right_cell market_listing_listed_date">{row["acted"]}</div>'
        f'<div class="market_listing_right_cell market_listing_listed_date">{row["listed"]}</div>'
        f'<div class="market_listing_item_name_block">'
        f'<span class="market_listing_item_name">{row["name"]}</span></div>'
        f"</div>"
    )


def _hover(row: dict) -> str:
    return (
        f"CreateItemHoverFromContainer( g_rgAssets, 'history_row_{row['id']}_image', "
        f"{row['appid']}, '{row['contextid']}', '{row['assetid']}', 0 );\n"
        f"CreateItemHoverFromContainer( g_rgAssets, 'history_row_{row['id']}_name', "
        f"{row['appid']}, '{row['contextid']}', '{row['assetid']}', 0 );\n"
    )


def make_row(
    id1: int,
    id2: int | None = None,
    *,
    acted: str = "Jan 5",
    listed: str = "Jan 3",
    price: str = "$1.00",
    gain: str = "-",
    refunded: bool = False,
    appid: int = 730,
    contextid: str = "2",
    assetid: str | None = None,
    name: str | None = None,
) -> dict:
    """履歴の 1 行分の定義. id は "<id1>_<id2>" になる."""
    id2 = id2 if id2 is not None else id1 + 1000
    return {
        "id": f"{id1}_{id2}",
        "acted": acted,
        "listed": listed,
        "price": price,
        "gain": gain,
        "refunded": refunded,
        "appid": appid,
        "contextid": contextid,
        "assetid": assetid or str(id1),
        "name": name or f"Item {id1}",
    }


def build_response(rows: list[dict], total_count: int, start: int = 0) -> dict:
    """/market/myhistory と同じ形のレスポンスを組み立てる."""
    assets: dict = {}
    for row in rows:
        contexts = assets.setdefault(str(row["appid"]), {})
        items = contexts.setdefault(row["contextid"], {})
        items[row["assetid"]] = {
            "appid": row["appid"],
            "contextid": row["contextid"],
            "id": row["assetid"],
            "classid": "310776",
            "instanceid": "0",
            "amount": "0",
            "name": row["name"],
            "market_name": row["name"],
            "market_hash_name": row["name"],
            "name_color": "d2d2d2",
            "background_color": "",
            "icon_url": "IzMF03bi9WpSBq",
        }

    return {
        "success": True,
        "pagesize": len(rows),
        "total_count": total_count,
        "start": start,
        "assets": assets,
        "hovers": "".join(_hover(row) for row in rows),
        "results_html": (
            '<div class="market_content_block market_home_listing_table">'
            + "".join(_row_html(row) for row in rows)
            + "</div>"
        ),
    }


def make_listing(index: int, transaction_id: str | None = None, acted: datetime | None = None) -> Listing:
    """保存済みの取引として使う Listing."""
    acted = acted or datetime(2019, 1, 5, 12, tzinfo=timezone.utc)
    return Listing(
        transaction_id=transaction_id or f"{index}-{index + 1000}",
        index=index,
        is_credit=True,
        appid="730",
        contextid="2",
        assetid=str(index),
        instanceid="0",
        market_hash_name=f"Item {index}",
        price=100,
        price_raw="$1.00",
        date_acted=acted,
        date_listed=acted,
        date_acted_raw="Jan 5",
        date_listed_raw="Jan 5",
    )


class FakeStore:
    """db モジュールと同じ関数を持つインメモリの保存先."""

    def __init__(self, listings: list[Listing] | None = None, settings: dict | None = None):
        self.listings: dict[str, Listing] = {}
        self.settings: dict[tuple[str, str], dict] = {}
        self.insert_calls: list[list[Listing]] = []
        for listing in listings or []:
            self.listings[listing.transaction_id] = listing
        if settings is not None:
            self.settings[(STEAMID, "listings")] = copy.deepcopy(settings)

    def insert_listings(self, steamid, listings):
        self.insert_calls.append(list(listings))
        for listing in listings:
            self.listings.setdefault(listing.transaction_id, listing)

    def get_first_listing(self, steamid):
        return min(self.listings.values(), key=lambda listing: listing.index, default=None)

    def get_last_listing(self, steamid):
        return max(self.listings.values(), key=lambda listing: listing.index, default=None)

    def get_listing_by_index(self, steamid, index):
        for listing in self.listings.values():
            if listing.index == index:
                return listing
        return None

    def count_listings(self, steamid):
        return len(self.listings)

    def get_settings(self, steamid, name):
        data = self.settings.get((steamid, name))
        return copy.deepcopy(data) if data is not None else None

    def save_settings(self, steamid, name, data):
        self.settings[(steamid, name)] = copy.deepcopy(data)

    def delete_settings(self, steamid, name):
        self.settings.pop((steamid, name), None)

    def saved(self, name="listings"):
        return self.settings.get((STEAMID, name))


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def response_factory():
    return build_response


@pytest.fixture
def listing_factory():
    return make_listing


@pytest.fixture
def store_factory():
    return FakeStore
