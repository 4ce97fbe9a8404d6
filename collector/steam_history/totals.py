"""取引の集計 (年別・月別・アプリ別・直近 30 日の日別).

金額は最小通貨単位の整数のまま合計する。is_credit の取引を売却、それ以外を購入として数える。
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from steam_history.models import Listing

DAILY_RANGE_DAYS = 30


@dataclass
class Total:
    """売却・購入それぞれの合計額と件数."""

    sale: int = 0
    sale_count: int = 0
    purchase: int = 0
    purchase_count: int = 0

    def add(self, listing: Listing) -> None:
        if listing.is_credit:
            self.sale += listing.price
            self.sale_count += 1
        else:
            self.purchase += listing.price
            self.purchase_count += 1


@dataclass
class AnnualTotal(Total):
    year: int = 0


@dataclass
class MonthlyTotal(Total):
    year: int = 0
    month: int = 0  # 1 始まり


@dataclass
class AppTotal(Total):
    appid: str = ""


@dataclass
class DailyTotal(Total):
    date: date | None = None


def annual_totals(listings: Iterable[Listing]) -> list[AnnualTotal]:
    """年ごとの合計 (新しい年から)."""
    totals: dict[int, AnnualTotal] = {}
    for listing in listings:
        year = listing.date_acted.year
        totals.setdefault(year, AnnualTotal(year=year)).add(listing)
    return [totals[key] for key in sorted(totals, reverse=True)]


def monthly_totals(listings: Iterable[Listing]) -> list[MonthlyTotal]:
    """月ごとの合計 (新しい月から). 取引の無い月は含めない."""
    totals: dict[tuple[int, int], MonthlyTotal] = {}
    for listing in listings:
        key = (listing.date_acted.year, listing.date_acted.month)
        totals.setdefault(key, MonthlyTotal(year=key[0], month=key[1])).add(listing)
    return [totals[key] for key in sorted(totals, reverse=True)]


def app_totals(listings: Iterable[Listing]) -> list[AppTotal]:
    """アプリごとの合計 (取引件数の多い順)."""
    totals: dict[str, AppTotal] = {}
    for listing in listings:
        totals.setdefault(listing.appid, AppTotal(appid=listing.appid)).add(listing)
    return sorted(
        totals.values(),
        key=lambda total: total.sale_count + total.purchase_count,
        reverse=True,
    )


def daily_totals(
    listings: Iterable[Listing],
    now: datetime | None = None,
    days: int = DAILY_RANGE_DAYS,
) -> list[DailyTotal]:
    """今日から days 日前までの日ごとの合計 (今日から).

    取引日は UTC 正午に正規化済みのため、今日の UTC 正午との差を日数に切り捨てて振り分ける。
    取引の無い日も 0 で含める。
    """
    now = now or datetime.now(timezone.utc)
    today = datetime.combine(now.astimezone(timezone.utc).date(), time(12), tzinfo=timezone.utc)
    totals = [DailyTotal(date=(today - timedelta(days=day)).date()) for day in range(days)]

    for listing in listings:
        day = (today - listing.date_acted) // timedelta(days=1)
        if 0 <= day < days:
            totals[day].add(listing)
    return totals


def summarize(listings: Iterable[Listing], now: datetime | None = None) -> dict[str, list[Total]]:
    """すべての集計をまとめて返す."""
    listings = list(listings)
    return {
        "annual": annual_totals(listings),
        "monthly": monthly_totals(listings),
        "daily": daily_totals(listings, now=now),
        "app": app_totals(listings),
    }
