"""データモデル定義."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from enum import IntEnum

from steam_history.money import Currency


class TransactionType(IntEnum):
    """ウォレット履歴の取引種別."""

    MARKET_TRANSACTION = 1
    IN_GAME_PURCHASE = 2
    PURCHASE = 3
    GIFT_PURCHASE = 4
    REFUND = 5


@dataclass
class Listing:
    """マーケットで成立した 1 件の取引 (売却 or 購入)."""

    transaction_id: str  # "<id1>-<id2>"
    index: int  # 古いものほど小さい連番
    is_credit: bool  # True = 売却 (入金)
    appid: str
    contextid: str
    assetid: str
    instanceid: str
    market_hash_name: str
    price: int  # 最小通貨単位の整数
    price_raw: str
    date_acted: datetime  # UTC 正午に正規化
    date_listed: datetime
    date_acted_raw: str
    date_listed_raw: str
    classid: str | None = None
    name: str | None = None
    market_name: str | None = None
    name_color: str | None = None  # 6 桁 16 進 (大文字)
    background_color: str | None = None
    icon_url: str | None = None
    amount: int = 1


@dataclass
class GameItem:
    """ウォレット取引に含まれる明細. 金額は行単位 (AccountTransaction.price) にしか無い."""

    app: str
    name: str
    count: int = 1


@dataclass
class AccountTransaction:
    """ウォレット履歴の 1 行."""

    transaction_type: TransactionType | None
    date: date
    count: int
    price: int
    price_raw: str
    is_credit: bool
    transaction_id: str | None = None
    items: list[GameItem] = field(default_factory=list)


@dataclass(frozen=True)
class ParsedDate:
    """短い日付文字列から取り出した月日. month は 0 始まり."""

    month: int
    day: int
    year: int | None = None


@dataclass(frozen=True)
class DateCursor:
    """年なし日付の年を推定するための基準日. month は 0 始まり."""

    year: int
    month: int
    day: int | None = None

    @classmethod
    def today(cls, now: datetime | None = None) -> DateCursor:
        now = now or datetime.now()
        return cls(year=now.year, month=now.month - 1, day=now.day)


@dataclass
class ListingSettings:
    """永続化される取得進捗 (アカウントごとに 1 レコード)."""

    current_index: int = 0
    total_count: int = 0
    last_index: int | None = None
    last_fetched_index: int | None = None
    recorded_count: int | None = None
    session: str | None = None
    language: str | None = None
    is_loading: bool = False
    date: datetime | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.date is not None:
            data["date"] = self.date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> ListingSettings:
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if isinstance(values.get("date"), str):
            values["date"] = datetime.fromisoformat(values["date"])
        return cls(**values)


@dataclass
class LoadState:
    """読み込み中のみ保持する状態."""

    date: DateCursor = field(default_factory=DateCursor.today)
    first: Listing | None = None
    last: Listing | None = None
    last_fetched: Listing | None = None
    last_indexed: Listing | None = None


@dataclass
class Account:
    """取得対象のアカウント."""

    steamid: str
    language: str | None
    currency: Currency | None
    sessionid: str | None = None


@dataclass
class Progress:
    step: int
    total: int


@dataclass
class LoadResult:
    """ListingManager.load の結果.

    completed が設定されている場合は取得完了 (エラーではない)。
    """

    records: list[Listing]
    progress: Progress
    completed: str | None = None


# --- DB 行との変換 ---

LISTING_DATE_FIELDS = ("date_acted", "date_listed")

LISTING_REQUIRED_FIELDS = (
    "appid",
    "contextid",
    "instanceid",
    "transaction_id",
    "market_hash_name",
    "index",
    "price",
    "is_credit",
    "date_listed",
    "date_acted",
)


def listing_to_record(listing: Listing, steamid: str) -> dict:
    """Listing を listings テーブルの行に変換する."""
    record = asdict(listing)
    for key in LISTING_DATE_FIELDS:
        record[key] = record[key].isoformat()
    record["steamid"] = steamid
    return record


def listing_from_record(row: dict) -> Listing:
    """listings テーブルの行から Listing を復元する."""
    known = {f.name for f in fields(Listing)}
    values = {k: v for k, v in row.items() if k in known}
    for key in LISTING_DATE_FIELDS:
        if isinstance(values.get(key), str):
            values[key] = datetime.fromisoformat(values[key])
    return Listing(**values)


def transaction_keys(transactions: list[AccountTransaction]) -> list[str]:
    """ウォレット取引ごとの重複判定キーを返す (transactions と同じ順).

    transid があればそれを使う。無い行 (返金など) は内容と、同じ内容の行のうち
    古い方から数えた順番で表す。履歴は全件を新しい順に取得し、新しい行は
    先頭にしか増えないので、古い方からの順番は取得し直しても変わらない。
    """
    keys: list[str] = [""] * len(transactions)
    seen: dict[str, int] = {}

    for i in reversed(range(len(transactions))):
        transaction = transactions[i]
        if transaction.transaction_id:
            keys[i] = transaction.transaction_id
            continue
        content = ":".join((
            transaction.date.isoformat(),
            str(int(transaction.transaction_type or 0)),
            str(transaction.count),
            str(transaction.price),
            "1" if transaction.is_credit else "0",
        ))
        seen[content] = seen.get(content, 0) + 1
        keys[i] = f"{content}#{seen[content]}"
    return keys


def transaction_to_record(transaction: AccountTransaction, steamid: str, key: str) -> dict:
    """AccountTransaction を account_transactions テーブルの行に変換する."""
    record = asdict(transaction)
    record["date"] = transaction.date.isoformat()
    if transaction.transaction_type is not None:
        record["transaction_type"] = int(transaction.transaction_type)
    record["transaction_key"] = key
    record["steamid"] = steamid
    return record
