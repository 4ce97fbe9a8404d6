"""エラー定義.

fatal な例外は取得を打ち切り、呼び出し元へ伝播させる。
fatal でない例外 (RetryableFetchError) は同じ位置から再取得する。
"""

from __future__ import annotations


class CollectorError(Exception):
    """収集処理の基底例外."""

    fatal = True

    def __init__(self, message: str, fatal: bool | None = None):
        super().__init__(message)
        self.message = message
        if fatal is not None:
            self.fatal = fatal


class FatalParseError(CollectorError):
    """不正・欠損データ. そのページは保存しない."""


class AssetMissingError(FatalParseError):
    """行が参照するアセットがレスポンスに存在しない."""


class DateParseError(FatalParseError):
    """日付文字列から月日を取り出せない."""


class RetryableFetchError(CollectorError):
    """通信エラーや Steam 側のメッセージ表示. 待機後に再試行する."""

    fatal = False


class SessionConflict(CollectorError):
    """別の場所で読み込みが開始された."""


class RepetitionGuardTripped(CollectorError):
    """同一リクエストが繰り返されている."""


class LanguageNotConfigured(CollectorError):
    """言語が設定されていない、またはロケールが存在しない."""


class CurrencyNotConfigured(CollectorError):
    """ウォレット通貨が設定されていない."""
