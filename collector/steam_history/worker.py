"""定期取得用ワーカー.

ListingManager を作り、周回完了 (completed) まで load を繰り返す。
"""

from __future__ import annotations

import logging

from steam_history.config import BACKGROUND_POLL_BOOLEAN
from steam_history.errors import CollectorError

logger = logging.getLogger(__name__)


class ListingWorker:
    """マーケット履歴のバックグラウンド取得.

    Args:
        manager_factory: 呼び出すたびに新しい ListingManager を返す関数
        poll_enabled: バックグラウンド取得が有効か
    """

    def __init__(self, manager_factory, poll_enabled: bool = BACKGROUND_POLL_BOOLEAN):
        self.manager_factory = manager_factory
        self.poll_enabled = poll_enabled
        self.is_loading = False
        # 前回クリアしてから取得した件数
        self.listing_count = 0

    def start(self, force: bool = False) -> int:
        """取得を開始し、完了したら累計件数を返す.

        Raises:
            CollectorError: 取得中、またはバックグラウンド取得が無効
        """
        if self.is_loading:
            raise CollectorError("Already loading listings.")
        if not force and not self.poll_enabled:
            raise CollectorError("Background polling is disabled.")

        self.is_loading = True
        try:
            return self._load()
        finally:
            self.is_loading = False

    def clear_listing_count(self) -> None:
        self.listing_count = 0

    def _load(self) -> int:
        manager = self.manager_factory()
        manager.setup()

        while True:
            try:
                result = manager.load()
            except CollectorError as e:
                logger.warning("履歴の取得に失敗: %s", e)
                raise

            self.listing_count += len(result.records)
            if result.completed:
                return self.listing_count
