"""Supabase データベース操作モジュール.

全テーブルは SUPABASE_SCHEMA (既定 steam_history) スキーマに配置。
どのテーブルも steamid 列でアカウントごとに区切る。

テーブル:
  listings              マーケット取引 (transaction_id 一意)
  account_transactions  ウォレット履歴 (steamid + transaction_key 一意)
  collector_settings    取得進捗などの設定 (steamid + name 一意)
"""

from __future__ import annotations

import logging
from datetime import datetime

from supabase import Client, create_client

from steam_history.config import SUPABASE_SCHEMA, SUPABASE_SECRET_KEY, SUPABASE_URL
from steam_history.models import (
    AccountTransaction,
    Listing,
    listing_from_record,
    listing_to_record,
    transaction_keys,
    transaction_to_record,
)

logger = logging.getLogger(__name__)

_client: Client | None = None


def _get_client() -> Client:
    global _client

    if _client is None:
        if not SUPABASE_URL or not SUPABASE_SECRET_KEY:
            raise RuntimeError("SUPABASE_URL / SUPABASE_SECRET_KEY が設定されていません")
        _client = create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)
    return _client


def _table(name: str):
    """対象スキーマのテーブルを参照する."""
    return _get_client().schema(SUPABASE_SCHEMA).table(name)


# --- listings ---

def insert_listings(steamid: str, listings: list[Listing]) -> None:
    """取引を一括挿入する. 既存の transaction_id は無視する."""
    if not listings:
        return
    records = [listing_to_record(listing, steamid) for listing in listings]
    (
        _table("listings")
        .upsert(records, on_conflict="transaction_id", ignore_duplicates=True)
        .execute()
    )
    logger.info("listings に %d 件挿入", len(records))


def get_first_listing(steamid: str) -> Listing | None:
    """最も古い (index が最小の) 取引."""
    return _first_by_index(steamid, desc=False)


def get_last_listing(steamid: str) -> Listing | None:
    """最も新しい (index が最大の) 取引."""
    return _first_by_index(steamid, desc=True)


def get_listing_by_index(steamid: str, index: int) -> Listing | None:
    resp = (
        _table("listings")
        .select("*")
        .eq("steamid", steamid)
        .eq("index", index)
        .limit(1)
        .execute()
    )
    return listing_from_record(resp.data[0]) if resp.data else None


def get_listings_in_range(steamid: str, low: int, high: int) -> list[Listing]:
    """index が low 以上 high 以下の取引を古い順に返す."""
    resp = (
        _table("listings")
        .select("*")
        .eq("steamid", steamid)
        .gte("index", low)
        .lte("index", high)
        .order("index")
        .execute()
    )
    return [listing_from_record(row) for row in resp.data]


def count_listings(steamid: str) -> int:
    resp = (
        _table("listings")
        .select("transaction_id", count="exact")
        .eq("steamid", steamid)
        .limit(1)
        .execute()
    )
    return resp.count or 0


def query_listings(
    steamid: str,
    *,
    appid: str | None = None,
    is_credit: bool | None = None,
    name: str | None = None,
    after: datetime | None = None,
    before: datetime | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Listing]:
    """絞り込み・ページ送り付きで取引を新しい順に返す.

    Args:
        appid: アプリ ID で絞り込む
        is_credit: True = 売却のみ、False = 購入のみ
        name: market_name の部分一致
        after / before: date_acted の範囲
        limit / offset: ページ送り
    """
    query = _table("listings").select("*").eq("steamid", steamid)

    if appid is not None:
        query = query.eq("appid", appid)
    if is_credit is not None:
        query = query.eq("is_credit", is_credit)
    if name:
        query = query.ilike("market_name", f"%{name}%")
    if after is not None:
        query = query.gte("date_acted", after.isoformat())
    if before is not None:
        query = query.lte("date_acted", before.isoformat())

    resp = query.order("index", desc=True).range(offset, offset + limit - 1).execute()
    return [listing_from_record(row) for row in resp.data]


def get_all_listings(steamid: str, batch_size: int = 1000, **filters) -> list[Listing]:
    """条件に合う取引をすべて新しい順に返す. batch_size 件ずつ読み込む."""
    listings: list[Listing] = []
    while True:
        batch = query_listings(steamid, limit=batch_size, offset=len(listings), **filters)
        listings.extend(batch)
        if len(batch) < batch_size:
            return listings


def _first_by_index(steamid: str, desc: bool) -> Listing | None:
    resp = (
        _table("listings")
        .select("*")
        .eq("steamid", steamid)
        .order("index", desc=desc)
        .limit(1)
        .execute()
    )
    return listing_from_record(resp.data[0]) if resp.data else None


# --- account_transactions ---

def insert_account_transactions(steamid: str, transactions: list[AccountTransaction]) -> None:
    """ウォレット履歴を一括挿入する.

    transactions は取得した全件 (新しい順)。既存の transaction_key は無視する。
    """
    if not transactions:
        return
    keys = transaction_keys(transactions)
    records = [transaction_to_record(t, steamid, key) for t, key in zip(transactions, keys)]
    (
        _table("account_transactions")
        .upsert(records, on_conflict="steamid,transaction_key", ignore_duplicates=True)
        .execute()
    )
    logger.info("account_transactions に %d 件挿入 (既存は無視)", len(records))


# --- collector_settings ---

def get_settings(steamid: str, name: str) -> dict | None:
    resp = (
        _table("collector_settings")
        .select("data")
        .eq("steamid", steamid)
        .eq("name", name)
        .limit(1)
        .execute()
    )
    return resp.data[0]["data"] if resp.data else None


def save_settings(steamid: str, name: str, data: dict) -> None:
    (
        _table("collector_settings")
        .upsert({"steamid": steamid, "name": name, "data": data}, on_conflict="steamid,name")
        .execute()
    )


def delete_settings(steamid: str, name: str) -> None:
    _table("collector_settings").delete().eq("steamid", steamid).eq("name", name).execute()
    logger.info("設定を削除: steamid=%s, name=%s", steamid, name)
