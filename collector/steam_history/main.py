"""Steam マーケット履歴取得: メインエントリーポイント.

処理フロー (collect):
  1. 設定からアカウント (steamid・言語・ウォレット通貨) を組み立てる
  2. 購入履歴を cursor が尽きるまで取得して記録
  3. マーケット履歴を周回完了まで取得して記録
  4. --poll 指定時は一定間隔で 3 を繰り返す

保存済みの取引は query (検索)・summary (集計)・export (CSV / JSON) で参照する。
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

from steam_history import db
from steam_history.config import (
    BACKGROUND_POLL_INTERVAL_MINUTES,
    LOG_DIR,
    STEAM_ID,
    STEAM_LANGUAGE,
    STEAM_SESSION_ID,
    STEAM_WALLET_CURRENCY,
)
from steam_history.errors import CollectorError, CurrencyNotConfigured
from steam_history.export import (
    FORMATS,
    listings_to_csv,
    listings_to_json,
    totals_to_csv,
    totals_to_json,
)
from steam_history.hovers import ItemDescriptionCache
from steam_history.localization import get_localization
from steam_history.manager import ListingManager
from steam_history.models import Account
from steam_history.money import get_currency
from steam_history.purchase_history import PurchaseHistoryManager
from steam_history.totals import summarize
from steam_history.worker import ListingWorker


def setup_logging() -> None:
    """ロギングの初期設定."""
    log_file = LOG_DIR / f"collector_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def build_account() -> Account:
    return Account(
        steamid=STEAM_ID,
        language=STEAM_LANGUAGE,
        currency=get_currency(STEAM_WALLET_CURRENCY),
        sessionid=STEAM_SESSION_ID,
    )


def collect_purchase_history(account: Account) -> int:
    """購入履歴を取得して記録する."""
    manager = PurchaseHistoryManager(account, get_localization(account.language))
    transactions = manager.load_all()
    db.insert_account_transactions(account.steamid, transactions)
    return len(transactions)


def run(poll: bool = False, skip_purchases: bool = False) -> None:
    """メイン処理."""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=== 履歴取得 開始 ===")
    start_time = time.time()

    account = build_account()
    if not account.steamid:
        logger.error("STEAM_ID が設定されていません。終了します。")
        return

    if not skip_purchases:
        try:
            count = collect_purchase_history(account)
            logger.info("購入履歴: %d 件", count)
        except CollectorError as e:
            logger.error("購入履歴の取得を中断: %s", e)

    worker = ListingWorker(lambda: ListingManager(account))

    while True:
        try:
            count = worker.start(force=not poll)
            logger.info("マーケット履歴: 新規 %d 件", count)
        except CollectorError as e:
            logger.error("マーケット履歴の取得を中断: %s", e)
            if not poll:
                raise

        if not poll:
            break

        worker.clear_listing_count()
        logger.info("%d 分後に再取得", BACKGROUND_POLL_INTERVAL_MINUTES)
        time.sleep(BACKGROUND_POLL_INTERVAL_MINUTES * 60)

    elapsed = time.time() - start_time
    logger.info("=== 履歴取得 完了 ===")
    logger.info("所要時間: %.1f 秒", elapsed)


def query(args: argparse.Namespace) -> str:
    """保存済みの取引を絞り込んで CSV で返す."""
    account = _saved_account()
    listings = db.query_listings(
        account.steamid,
        limit=args.limit,
        offset=args.offset,
        **_listing_filters(args),
    )
    return listings_to_csv(listings, account.currency)


def summary(args: argparse.Namespace) -> str:
    """保存済みの取引を集計して返す."""
    account = _saved_account()
    listings = db.get_all_listings(account.steamid, **_listing_filters(args))
    totals = summarize(listings)[args.kind]
    if args.format == "json":
        return totals_to_json(totals, account.currency)
    return totals_to_csv(totals, account.currency)


def export(args: argparse.Namespace) -> str:
    """保存済みの取引をすべて書き出す."""
    account = _saved_account()
    listings = db.get_all_listings(account.steamid, **_listing_filters(args))
    logging.getLogger(__name__).info("書き出し: %d 件 (%s)", len(listings), args.format)

    if args.format == "json":
        return listings_to_json(listings, account.currency, account.steamid)
    descriptions = ItemDescriptionCache() if args.describe else None
    return listings_to_csv(listings, account.currency, descriptions, account.language or "english")


def _saved_account() -> Account:
    account = build_account()
    if not account.steamid:
        raise CollectorError("STEAM_ID が設定されていません")
    if account.currency is None:
        raise CurrencyNotConfigured("No wallet currency detected")
    return account


def _listing_filters(args: argparse.Namespace) -> dict:
    is_credit = None
    if args.sales:
        is_credit = True
    elif args.purchases:
        is_credit = False
    return {
        "appid": args.app,
        "is_credit": is_credit,
        "name": args.name,
        "after": args.after,
        "before": args.before,
    }


def _parse_date(value: str) -> datetime:
    """YYYY-MM-DD などの ISO 形式. タイムゾーン省略時は UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _write(text: str, output: Path | None) -> None:
    if output is None:
        sys.stdout.write(text)
        return
    output.write_text(text, encoding="utf-8")
    logging.getLogger(__name__).info("保存: %s", output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Steam マーケット履歴の取得")
    commands = parser.add_subparsers(dest="command")

    collect = commands.add_parser("collect", help="履歴を取得して記録する (既定)")
    collect.add_argument("--poll", action="store_true", help="一定間隔で取得を繰り返す")
    collect.add_argument("--skip-purchases", action="store_true", help="購入履歴を取得しない")

    filters = argparse.ArgumentParser(add_help=False)
    filters.add_argument("--app", help="アプリ ID")
    kind = filters.add_mutually_exclusive_group()
    kind.add_argument("--sales", action="store_true", help="売却のみ")
    kind.add_argument("--purchases", action="store_true", help="購入のみ")
    filters.add_argument("--name", help="アイテム名の部分一致")
    filters.add_argument("--after", type=_parse_date, help="この日時以降")
    filters.add_argument("--before", type=_parse_date, help="この日時以前")
    filters.add_argument("--output", type=Path, help="出力先ファイル (省略時は標準出力)")

    query_parser = commands.add_parser("query", parents=[filters], help="取引を検索する")
    query_parser.add_argument("--limit", type=int, default=20)
    query_parser.add_argument("--offset", type=int, default=0)

    summary_parser = commands.add_parser("summary", parents=[filters], help="取引を集計する")
    summary_parser.add_argument(
        "--kind", choices=("annual", "monthly", "daily", "app"), default="monthly",
    )
    summary_parser.add_argument("--format", choices=FORMATS, default="csv")

    export_parser = commands.add_parser("export", parents=[filters], help="取引を書き出す")
    export_parser.add_argument("--format", choices=FORMATS, default="csv")
    export_parser.add_argument(
        "--describe", action="store_true", help="アイテムの種類を取得して CSV に加える",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.command in (None, "collect"):
        run(poll=getattr(args, "poll", False), skip_purchases=getattr(args, "skip_purchases", False))
        return

    handlers = {"query": query, "summary": summary, "export": export}
    _write(handlers[args.command](args), args.output)


if __name__ == "__main__":
    main()
