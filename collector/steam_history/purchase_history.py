"""購入履歴 (ウォレット履歴) の取得.

レスポンスに含まれる cursor を次のリクエストに渡し、cursor が返らなくなるまで続ける。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from steam_history.config import PURCHASE_HISTORY_DELAY_SECONDS
from steam_history.errors import CollectorError, CurrencyNotConfigured
from steam_history.localization import Localization
from steam_history.models import Account, AccountTransaction
from steam_history.scraper import fetch_purchase_history
from steam_history.transaction_parser import parse_transactions

logger = logging.getLogger(__name__)


@dataclass
class PurchaseHistoryPage:
    records: list[AccountTransaction]
    cursor: dict | None = None


class PurchaseHistoryManager:
    """購入履歴を読み込む. store.steampowered.com へのログインが必要."""

    def __init__(
        self,
        account: Account,
        localization: Localization,
        fetch_history=fetch_purchase_history,
    ):
        self.account = account
        self.localization = localization
        self.fetch_history = fetch_history

    def load(self, cursor: dict | None = None, delay: float = 0) -> PurchaseHistoryPage:
        """1 ページ分を取得する.

        Args:
            cursor: 前回のレスポンスに含まれていた位置
            delay: 取得前の待機秒数
        """
        sessionid = self.account.sessionid
        if not sessionid:
            raise CollectorError("No login")
        if self.account.currency is None:
            raise CurrencyNotConfigured("No wallet currency detected")

        time.sleep(delay)

        response = self.fetch_history(sessionid, cursor)
        records = parse_transactions(
            response.get("html") or "", self.account.currency, self.localization
        )
        return PurchaseHistoryPage(records=records, cursor=response.get("cursor"))

    def load_all(self, delay: float = PURCHASE_HISTORY_DELAY_SECONDS) -> list[AccountTransaction]:
        """cursor が返らなくなるまで取得し、全件を返す."""
        transactions: list[AccountTransaction] = []
        page = self.load()

        while True:
            transactions.extend(page.records)
            logger.info("購入履歴: %d 件取得 (累計 %d 件)", len(page.records), len(transactions))
            if not page.cursor:
                break
            page = self.load(page.cursor, delay)

        logger.info("購入履歴の取得完了: %d 件", len(transactions))
        return transactions
