"""金額の解析・整形モジュール.

金額はすべて最小通貨単位の整数 (USD ならセント) で扱う。
float は経由せず、文字列のまま桁を揃える。
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Currency:
    """通貨ごとの表記ルール."""

    wallet_code: int  # Steam の通貨 ID
    code: str  # ISO 4217
    symbol: str
    precision: int  # 最小単位の桁数
    thousand: str
    decimal: str
    spacer: bool = False  # 記号と数値の間に空白を入れる
    after: bool = False  # 記号を数値の後ろに置く
    trim_trailing: bool = False  # 端数 0 の場合は小数部を省く
    format_precision: int | None = None  # 表示用の小数桁数


def _currency(wallet_code, code, symbol, thousand, decimal, **kwargs) -> Currency:
    return Currency(
        wallet_code=wallet_code,
        code=code,
        symbol=symbol,
        precision=kwargs.pop("precision", 2),
        thousand=thousand,
        decimal=decimal,
        **kwargs,
    )


# Steam のウォレット通貨 ID -> 通貨
CURRENCIES: dict[int, Currency] = {
    c.wallet_code: c
    for c in (
        _currency(1, "USD", "$", ",", "."),
        _currency(2, "GBP", "£", ",", "."),
        _currency(3, "EUR", "€", " ", ",", after=True),
        _currency(5, "RUB", "pуб.", " ", ",", spacer=True, trim_trailing=True, after=True),
        _currency(6, "PLN", "zl", " ", ",", spacer=True, after=True),
        _currency(7, "BRL", "R$", ".", ",", spacer=True),
        # 最小単位は銭だが、表示は整数
        _currency(8, "JPY", "¥", ",", ".", spacer=True, format_precision=0),
        _currency(9, "NOK", "kr", ".", ",", spacer=True, after=True),
        _currency(10, "IDR", "Rp", " ", ".", spacer=True, format_precision=0),
        _currency(11, "MYR", "RM", ",", "."),
        _currency(12, "PHP", "P", ",", "."),
        _currency(13, "SGD", "S$", ",", "."),
        _currency(14, "THB", "฿", ",", "."),
        _currency(15, "VND", "₫", ",", "."),
        _currency(16, "KRW", "₩", ",", "."),
        _currency(17, "TRY", "TL", "", ",", spacer=True, after=True),
        _currency(18, "UAH", "₴", "", ",", after=True),
        _currency(19, "MXN", "Mex$", ",", ".", spacer=True),
        _currency(20, "CAD", "CDN$", ",", ".", spacer=True),
        _currency(21, "AUD", "A$", ",", ".", spacer=True),
        _currency(22, "NZD", "NZ$", ",", ".", spacer=True),
        _currency(23, "CNY", "¥", ",", ".", spacer=True),
        _currency(24, "INR", "₹", ",", ".", spacer=True),
        _currency(25, "CLP", "CLP$", ".", ",", spacer=True, trim_trailing=True),
        _currency(26, "PEN", "S/.", ",", "."),
        _currency(27, "COP", "COL$", ".", ",", spacer=True, trim_trailing=True),
        _currency(28, "ZAR", "R", "", "."),
        _currency(29, "HKD", "HK$", ",", ".", spacer=True),
        _currency(30, "TWD", "NT$", ",", ".", spacer=True),
        _currency(31, "SAR", "SR", ",", ".", spacer=True, after=True),
        _currency(32, "AED", "DH", ",", ".", spacer=True, after=True),
        _currency(34, "ARS", "$", ".", ",", spacer=True),
        _currency(35, "ILS", "₪", ",", ".", spacer=True),
        _currency(37, "KZT", "₸", "", ",", spacer=True, after=True),
        _currency(38, "KWD", "ك", ",", ".", spacer=True, after=True),
        _currency(39, "QAR", "﷼", ",", ".", spacer=True, after=True),
        _currency(40, "CRC", "₡", ".", ","),
        _currency(41, "UYU", "$U", ".", ","),
    )
}

_THOUSANDS_PATTERN = re.compile(r"\d(?=(?:\d{3})+(?!\d))")


def get_currency(wallet_code: int | str) -> Currency | None:
    """ウォレット通貨 ID から通貨を取得する. 未対応なら None."""
    try:
        return CURRENCIES.get(int(wallet_code))
    except (TypeError, ValueError):
        return None


def parse_money(value: str, currency: Currency) -> int:
    """金額文字列を最小通貨単位の整数に変換する.

    Examples:
        parse_money("$34.33", USD) -> 3433
        parse_money("483,34 pуб.", RUB) -> 48334
    """
    digits = _extract_number(value, currency)
    return int(digits) if digits else 0


def format_money(value: int, currency: Currency) -> str:
    """最小通貨単位の整数を通貨表記に整形する."""
    formatted = _format_money_integer(value, currency)
    parts = [currency.symbol, formatted]
    if currency.after:
        parts.reverse()
    return (" " if currency.spacer else "").join(parts)


def to_decimal(value: int, precision: int) -> float:
    """最小通貨単位の整数を小数に変換する (表示・集計用)."""
    return value / 10**precision


def _extract_number(value: str, currency: Currency) -> str:
    """金額文字列から最小単位の桁列を取り出す. 丸めは行わない."""
    stripped = value.replace(currency.symbol, "")
    if currency.thousand:
        stripped = stripped.replace(currency.thousand, "")
    if currency.decimal != ".":
        stripped = stripped.replace(currency.decimal, ".")
    stripped = re.sub(r"[^\d.]", "", stripped)

    whole, _, rest = stripped.partition(".")
    fraction = rest.split(".")[0]
    if currency.precision > 0:
        whole += fraction.ljust(currency.precision, "0")[: currency.precision]
    return whole


def _format_money_integer(value: int, currency: Currency) -> str:
    sign = "-" if value < 0 else ""
    whole, division = divmod(abs(value), 10**currency.precision)
    formatted = sign + _thousands(whole, currency.thousand)

    format_precision = currency.format_precision
    if format_precision is None:
        format_precision = currency.precision

    if format_precision == 0:
        return formatted
    if division == 0 and currency.trim_trailing:
        return formatted

    fraction = str(division).zfill(currency.precision)
    fraction = fraction[:format_precision].ljust(format_precision, "0")
    return f"{formatted}{currency.decimal}{fraction}"


def _thousands(value: int, separator: str) -> str:
    return _THOUSANDS_PATTERN.sub(lambda m: m.group(0) + separator, str(value))
