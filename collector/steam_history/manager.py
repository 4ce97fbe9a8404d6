"""マーケット履歴の取得管理 (状態遷移).

新しい順にページを取得し、以下のいずれかに達したら 1 周 (pass) 完了とする:
  - 履歴の末尾 (total_count)
  - 前回の周回の先頭 (last_index)
完了時は位置をリセットし、次の周回は最新ページから取り直す。

進捗は DB の collector_settings に保存し、中断しても続きから取得できる。
複数箇所からの同時読み込みは session トークンの照合で検出する。
"""

from __future__ import annotations

import dataclasses
import logging
import math
import secrets
import time
from datetime import datetime, timezone

from steam_history import db
from steam_history.config import (
    MARKET_PER_PAGE,
    MARKET_POLL_INTERVAL_SECONDS,
    REPEAT_REQUEST_LIMIT,
    RETRY_DELAY_SECONDS,
)
from steam_history.errors import (
    CurrencyNotConfigured,
    LanguageNotConfigured,
    RepetitionGuardTripped,
    RetryableFetchError,
    SessionConflict,
)
from steam_history.listing_parser import parse_listings
from steam_history.localization import Localization, get_localization
from steam_history.models import (
    Account,
    DateCursor,
    Listing,
    ListingSettings,
    LoadResult,
    LoadState,
    Progress,
)
from steam_history.scraper import fetch_listings_page

logger = logging.getLogger(__name__)

SETTINGS_NAME = "listings"

MESSAGE_UPDATED = "Listings successfully updated!"
MESSAGE_FULLY_LOADED = "Listings fully loaded!"


class ListingManager:
    """マーケット履歴の取得状態を管理する.

    Args:
        account: 取得対象のアカウント (ウォレット通貨・言語を含む)
        store: 永続化先. 既定は db モジュール
        fetch_page: (start, count, language) -> レスポンス JSON
        page_size: 1 ページの件数
        poll_interval: ページ間の待機秒数
    """

    def __init__(
        self,
        account: Account,
        store=db,
        fetch_page=fetch_listings_page,
        page_size: int = MARKET_PER_PAGE,
        poll_interval: float = MARKET_POLL_INTERVAL_SECONDS,
    ):
        self.account = account
        self.store = store
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.poll_interval = poll_interval

        self.state = LoadState()
        self.settings = ListingSettings()
        self._localization: Localization | None = None
        self._session: str | None = None
        # 同一リクエストの繰り返し検出用. リセットで消去
        self._requests: list[str] = []
        # 取得済みページ数
        self._page = 0
        # この読み込みで開始した位置
        self._start_index = 0

    @property
    def steamid(self) -> str:
        return self.account.steamid

    def setup(self) -> None:
        """設定を読み込み、新しい読み込みセッションを開始する.

        Raises:
            CurrencyNotConfigured: ウォレット通貨が不明
            LanguageNotConfigured: 言語が不明、またはロケールが無い
        """
        if self.account.currency is None:
            raise CurrencyNotConfigured("No wallet currency detected")

        self.get_settings()

        # 言語は最初の読み込みで固定し、以後 Steam 側で変更されても変えない
        if not self.settings.language:
            self.settings.language = self.account.language
        if not self.settings.language:
            raise LanguageNotConfigured("No language detected when configuring ListingManager")

        if not self.settings.current_index:
            self.settings.current_index = 0
        self._start_index = self.settings.current_index

        self._localization = get_localization(self.settings.language)

        self._session = secrets.token_hex(5)
        self.settings.session = self._session
        self.settings.is_loading = True
        self._save_settings()

        self._load_state()
        logger.info(
            "セットアップ完了: steamid=%s, language=%s, current_index=%d",
            self.steamid, self.settings.language, self.settings.current_index,
        )

    def load(self, delay: float | None = None, load_instantly: bool = False) -> LoadResult:
        """次のページを取得する.

        Args:
            delay: 取得前の待機秒数. 未指定ならページ間隔
            load_instantly: True なら待機しない

        Returns:
            取得した取引と進捗。周回が完了した場合は completed にメッセージが入る。

        Raises:
            SessionConflict: 別の場所で読み込みが開始された
            RepetitionGuardTripped: 同一リクエストが繰り返された
            FatalParseError: 解析できないページ
        """
        seconds = 0 if load_instantly else (delay or self.poll_interval)

        while True:
            completed = self._check_load_state()
            if completed:
                logger.info(completed)
                return LoadResult(records=[], progress=self._progress(), completed=completed)

            time.sleep(seconds)

            start = self._next_load_index()
            try:
                response = self._get_listings(start, self.page_size, self.settings.language)
            except RetryableFetchError as e:
                seconds = self.poll_interval
                logger.warning("履歴取得エラー: start=%d, error=%s", start, e)
                continue

            try:
                records, next_index = self._parse(response)
            except RetryableFetchError as e:
                seconds = RETRY_DELAY_SECONDS
                logger.warning("履歴解析エラー: start=%d, error=%s (%d 秒後に再試行)", start, e, seconds)
                continue

            return self._on_records(records, next_index)

    def reset(self) -> None:
        """周回を終了し、次の周回の境界を記録する."""
        last = self.store.get_last_listing(self.steamid)

        self.state.date = DateCursor.today()
        self.settings.current_index = 0
        if last is not None:
            self.settings.last_index = last.index
        self.settings.last_fetched_index = None
        self.settings.is_loading = False
        self._requests = []

        self._save_settings()
        logger.info("リセット: last_index=%s", self.settings.last_index)

    def get_settings(self) -> ListingSettings:
        """保存されている設定を読み込む."""
        data = self.store.get_settings(self.steamid, SETTINGS_NAME)
        self.settings = ListingSettings.from_dict(data)
        return self.settings

    def delete_settings(self) -> None:
        self.store.delete_settings(self.steamid, SETTINGS_NAME)

    def _save_settings(self) -> None:
        self.store.save_settings(self.steamid, SETTINGS_NAME, self.settings.to_dict())

    def _load_state(self) -> None:
        """保存済みの取引から境界となる取引と基準日を読み込む."""
        first = self.store.get_first_listing(self.steamid)
        last = self.store.get_last_listing(self.steamid)
        last_fetched = self._listing_at(self.settings.last_fetched_index)
        last_indexed = self._listing_at(self.settings.last_index)

        date = DateCursor.today()
        if first is not None and last_indexed is None:
            # 最初の周回の途中: 最も古い取引の日付から続ける
            date = dataclasses.replace(
                date, year=first.date_acted.year, month=first.date_acted.month - 1
            )
        elif last_fetched is not None:
            date = dataclasses.replace(
                date, year=last_fetched.date_acted.year, month=last_fetched.date_acted.month - 1
            )

        self.state = LoadState(
            date=date,
            first=first,
            last=last,
            last_fetched=last_fetched,
            last_indexed=last_indexed,
        )

    def _listing_at(self, index: int | None) -> Listing | None:
        if index is None:
            return None
        return self.store.get_listing_by_index(self.steamid, index)

    def _check_load_state(self) -> str | None:
        """読み込み可能か確認する. 周回完了ならリセットしてメッセージを返す."""
        settings = self.get_settings()

        if settings.session != self._session:
            raise SessionConflict("Load was called elsewhere")
        if not settings.language:
            raise LanguageNotConfigured("No language")

        start = self._next_load_index()
        # 前回の周回の先頭に到達
        is_beginning = bool(
            self._page > 0
            and settings.total_count
            and settings.last_index
            and self._calculate_listing_index(start) <= settings.last_index
        )
        # 履歴の末尾に到達
        is_end = bool(settings.total_count != 0 and start >= settings.total_count)

        if is_beginning:
            self.reset()
            return MESSAGE_UPDATED
        if is_end:
            self.reset()
            return MESSAGE_FULLY_LOADED
        return None

    def _get_listings(self, start: int, count: int, language: str) -> dict:
        self._requests.append(f"{count}:{start}:{language}")

        # 同一リクエストが REPEAT_REQUEST_LIMIT 回続いたら中断
        last_requests = self._requests[-REPEAT_REQUEST_LIMIT:]
        if len(last_requests) == REPEAT_REQUEST_LIMIT and len(set(last_requests)) == 1:
            raise RepetitionGuardTripped("Too many errors")

        return self.fetch_page(start, count, language)

    def _parse(self, response: dict) -> tuple[list[Listing], int]:
        """レスポンスを解析し、取引と次の取得位置を返す."""
        difference = 0
        total_count = response.get("total_count")

        if total_count is not None:
            difference = total_count - self.settings.total_count
            self.settings.total_count = total_count

            # 前回から 1 ページ以上増えている場合は行を読まず、差分から位置を補正する
            # 先頭 (0) から読んでいる場合は常に最新なので補正しない
            if difference >= self.page_size and self.settings.current_index != 0:
                logger.info("件数が大きく増加: %d 件. 取得位置を補正", difference)
                return [], self._shifted_next_index(difference)

        result = parse_listings(response, self.state, self.account.currency, self._localization)
        self.state.date = result.date_cursor

        if response.get("start") == 0:
            difference = 0

        return result.records, self._shifted_next_index(difference)

    def _shifted_next_index(self, difference: int) -> int:
        # 現在のページ分を差し引く
        page = difference // self.page_size - 1
        offset = page * self.page_size
        return self._next_load_index(max(offset, self.page_size))

    def _on_records(self, records: list[Listing], next_index: int) -> LoadResult:
        if records:
            # 周回の境界では重複が起きうるが、既存の transaction_id は無視される
            self.store.insert_listings(self.steamid, records)

        self._update_settings_from_page(records, next_index)
        logger.info(
            "ページ取得: %d 件 (%d/%d)",
            len(records), self._page, self._get_total_pages(),
        )
        return LoadResult(records=records, progress=self._progress())

    def _update_settings_from_page(self, records: list[Listing], next_index: int) -> None:
        self.settings.current_index = next_index
        self._page += 1

        if records:
            self.state.last_fetched = records[-1]
            self.settings.last_fetched_index = records[-1].index

        self.settings.date = datetime.now(timezone.utc)
        self.settings.recorded_count = self.store.count_listings(self.steamid)
        self._save_settings()

    def _next_load_index(self, index: int = 0) -> int:
        return self.settings.current_index + index

    def _calculate_listing_index(self, index: int = 0) -> int:
        """取得位置を index (古いものほど小さい) に変換する."""
        return self.settings.total_count - index

    def _get_total_pages(self) -> int:
        """残りのページ数を見積もる (最低 1)."""
        if self.settings.last_index:
            needed = self._calculate_listing_index(self._start_index) - self.settings.last_index
        else:
            needed = self.settings.total_count - self._start_index
        return max(math.ceil((needed or 0) / self.page_size), 1)

    def _progress(self) -> Progress:
        return Progress(step=self._page, total=self._get_total_pages())
