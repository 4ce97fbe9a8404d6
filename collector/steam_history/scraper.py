"""Steam への HTTP リクエストモジュール.

ログイン済みの Cookie (steamLoginSecure / sessionid) は設定から受け取る。
通信と JSON の失敗は RetryableFetchError に変換し、再試行の判断は呼び出し側に任せる。
"""

from __future__ import annotations

import json
import logging
import re

import requests

from steam_history.config import (
    CLASSINFO_URL_TEMPLATE,
    MARKET_HISTORY_URL,
    PURCHASE_HISTORY_URL,
    REQUEST_TIMEOUT,
    STEAM_LOGIN_SECURE,
    STEAM_SESSION_ID,
    USER_AGENT,
)
from steam_history.errors import CollectorError, RetryableFetchError

logger = logging.getLogger(__name__)

_session: requests.Session | None = None


def get_session() -> requests.Session:
    """Steam の Cookie を持つ共有セッションを返す."""
    global _session

    if _session is None:
        _session = requests.Session()
        _session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "X-Requested-With": "XMLHttpRequest",
        })
        for domain in ("steamcommunity.com", "store.steampowered.com"):
            if STEAM_LOGIN_SECURE:
                _session.cookies.set("steamLoginSecure", STEAM_LOGIN_SECURE, domain=domain)
            if STEAM_SESSION_ID:
                _session.cookies.set("sessionid", STEAM_SESSION_ID, domain=domain)
    return _session


def fetch_listings_page(start: int, count: int, language: str) -> dict:
    """マーケット履歴の 1 ページを取得する.

    Returns:
        {"success", "total_count", "start", "assets", "hovers", "results_html", ...}
    """
    params = {"start": start, "count": count, "l": language, "norender": 0}
    body = _request_json("GET", MARKET_HISTORY_URL, params=params)

    if not body.get("success"):
        message = body.get("error") or body.get("message") or "Response failed"
        logger.error("履歴取得失敗: start=%d, error=%s", start, message)
        raise RetryableFetchError(message)

    return body


def fetch_purchase_history(sessionid: str, cursor: dict | None = None) -> dict:
    """購入履歴 (ウォレット履歴) の続きを取得する.

    Returns:
        {"html": str, "cursor": dict | None}
    """
    data = {"sessionid": sessionid}
    # cursor はフォームでは cursor[wallet_txnid] のように展開して送る
    for key, value in (cursor or {}).items():
        data[f"cursor[{key}]"] = value

    return _request_json("POST", PURCHASE_HISTORY_URL, data=data)


# レスポンス本文: BuildHover( 'economy_item_xxx', {...} );
BUILD_HOVER_RE = re.compile(r"BuildHover\(\s*'economy_item_[A-Za-z0-9]+',\s*(.*)\s\);", re.DOTALL)


def fetch_classinfo(appid: str, classid: str, instanceid: str, language: str = "english") -> dict:
    """アイテムの説明 (ホバー表示用) を取得する.

    Raises:
        CollectorError: 本文から説明を取り出せない
    """
    url = CLASSINFO_URL_TEMPLATE.format(appid=appid, classid=classid, instanceid=instanceid)
    params = {"content_only": 1, "l": language}
    text = _request("GET", url, params=params).text

    match = BUILD_HOVER_RE.search(text)
    if not match:
        logger.error("アイテム説明が見つかりません: %s", url)
        raise CollectorError("Failed to parse asset from response")
    try:
        return json.loads(match.group(1))
    except ValueError as e:
        logger.error("アイテム説明のパースエラー: %s, error=%s", url, e)
        raise CollectorError("Failed to parse asset from response") from e


def _request(method: str, url: str, **kwargs) -> requests.Response:
    try:
        resp = get_session().request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        resp.raise_for_status()
        return resp
    except requests.RequestException as e:
        logger.error("リクエスト失敗: %s %s, error=%s", method, url, e)
        raise RetryableFetchError(str(e)) from e


def _request_json(method: str, url: str, **kwargs) -> dict:
    resp = _request(method, url, **kwargs)
    try:
        return resp.json()
    except ValueError as e:
        logger.error("JSON パースエラー: %s %s, error=%s", method, url, e)
        raise RetryableFetchError("Invalid JSON response") from e
