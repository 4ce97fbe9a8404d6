"""アイテム説明のキャッシュ.

取得した説明はプロセスの存続期間中、破棄せずに保持する。
"""

from __future__ import annotations

import logging

from steam_history.scraper import fetch_classinfo

logger = logging.getLogger(__name__)


class ItemDescriptionCache:
    """(appid, classid, instanceid, language) ごとにアイテム説明を保持する."""

    def __init__(self, fetch=fetch_classinfo):
        self.fetch = fetch
        self._items: dict[tuple[str, str, str, str], dict] = {}

    def get(self, appid: str, classid: str, instanceid: str, language: str = "english") -> dict:
        key = (str(appid), str(classid), str(instanceid), language)
        if key not in self._items:
            logger.debug("アイテム説明を取得: %s", key)
            self._items[key] = self.fetch(*key)
        return self._items[key]

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
