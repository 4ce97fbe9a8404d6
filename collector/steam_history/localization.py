"""ロケール読み込みと日付文字列の解析.

マーケット履歴の日付は "Mar 30" / "3月30日" / "31.4." のような年なしの短い表記で、
書式はアカウントの言語に依存する。言語ごとの月略称は locales/<code>.json に置く。
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date
from functools import lru_cache
from pathlib import Path

from steam_history.errors import DateParseError, LanguageNotConfigured
from steam_history.models import ParsedDate, TransactionType

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).resolve().parent / "locales"

# Steam の言語名 -> ロケールコード
LANGUAGE_CODES = {
    "bulgarian": "bg",
    "czech": "cs",
    "danish": "da",
    "dutch": "nl",
    "finnish": "fi",
    "french": "fr",
    "greek": "el",
    "german": "de",
    "hungarian": "hu",
    "italian": "it",
    "japanese": "ja",
    "koreana": "ko",
    "norwegian": "no",
    "polish": "pl",
    "portuguese": "pt-PT",
    "brazilian": "pt-BR",
    "russian": "ru",
    "romanian": "ro",
    "schinese": "zh-CN",
    "swedish": "sv-SE",
    "tchinese": "zh-TW",
    "thai": "th",
    "turkish": "tr",
    "ukrainian": "uk",
    "english": "en",
    "spanish": "es-ES",  # スペイン
    "latam": "es-419",  # 中南米
}

_CJK_CODES = ("ja", "zh-CN", "zh-TW")
_CJK_PATTERN = re.compile(r"(\d+)月(\d+)日")
_KO_PATTERN = re.compile(r"(\d+)년 (\d+)월 (\d+)일")
_FI_PATTERN = re.compile(r"^\s*(\d+)\.\s*(\d+)\.?")
_YEAR_PATTERN = re.compile(r"\d{4}")


class Localization:
    """言語ごとの日付書式・文字列."""

    def __init__(self, code: str, language: str, data: dict):
        self.code = code
        self.language = language

        abbreviations = data["months"]["abbreviations"]
        self._month_patterns = [re.compile(a, re.IGNORECASE) for a in abbreviations]
        self._month_abbreviations = [a.split("|")[0] for a in abbreviations]

        self.transaction_types: dict[str, TransactionType] = {
            label: TransactionType(value)
            for label, value in data.get("transaction_types", {}).items()
        }

    def __repr__(self) -> str:
        return f"Localization(code={self.code!r}, language={self.language!r})"

    def parse_date_string(self, string: str) -> ParsedDate:
        """年なしの短い日付文字列から月日を取り出す.

        韓国語のみ年を含む。month は 0 始まり。

        Raises:
            DateParseError: 月と日を取り出せない場合
        """
        year = month = day = None

        if self.code == "fi":
            # '31.4.' (日.月.)
            match = _FI_PATTERN.match(string)
            if match:
                day, month = int(match.group(1)), int(match.group(2)) - 1
        elif self.code in _CJK_CODES:
            # '1月27日'、繁体字は '1 月 27 日'
            match = _CJK_PATTERN.search(re.sub(r"\s", "", string))
            if match:
                month, day = int(match.group(1)) - 1, int(match.group(2))
        elif self.code == "ko":
            # '2019년 1월 27일'
            match = _KO_PATTERN.search(string)
            if match:
                year = int(match.group(1))
                month, day = int(match.group(2)) - 1, int(match.group(3))
        else:
            for i, pattern in enumerate(self._month_patterns):
                if pattern.search(string):
                    month = i
                    break
            digits = re.sub(r"\D", "", string)
            if digits:
                day = int(digits)

        if month is None or day is None:
            raise DateParseError(f"Invalid date: {string}")

        return ParsedDate(month=month, day=day, year=year)

    def parse_full_date(self, string: str) -> date:
        """4 桁の年を含む日付文字列 (購入履歴) を date に変換する."""
        match = _YEAR_PATTERN.search(string)
        if not match:
            raise DateParseError(f"Invalid date: {string}")

        if self.code == "ko":
            parsed = self.parse_date_string(string)
        else:
            parsed = self.parse_date_string(string[: match.start()] + string[match.end():])

        try:
            return date(int(match.group(0)), parsed.month + 1, parsed.day)
        except ValueError as e:
            raise DateParseError(f"Invalid date: {string}") from e

    def to_date_string(self, value: date) -> str:
        """date を履歴ページと同じ短い表記に戻す."""
        month, day = value.month, value.day

        if self.code in _CJK_CODES:
            return f"{month}月{day}日"
        if self.code == "ko":
            return f"{value.year}년 {month}월 {day}일"
        if self.code == "fi":
            return f"{day}.{month}."
        return f"{self._month_abbreviations[month - 1]} {day}"

    def transaction_type(self, label: str) -> TransactionType | None:
        """"Market Transaction" / "Market Transactions" のような表記から種別を引く."""
        label = label.strip()
        singular = re.sub(r"s$", "", label)
        return self.transaction_types.get(label) or self.transaction_types.get(singular)


@lru_cache(maxsize=None)
def get_localization(language: str) -> Localization:
    """Steam の言語名からロケールを読み込む (言語ごとに 1 回だけ読む).

    Raises:
        LanguageNotConfigured: 未対応の言語
    """
    code = LANGUAGE_CODES.get(language)
    path = LOCALES_DIR / f"{code}.json"

    if not code or not path.exists():
        raise LanguageNotConfigured(f"No locales available for {language}")

    logger.debug("ロケール読み込み: %s (%s)", language, code)
    data = json.loads(path.read_text(encoding="utf-8"))
    return Localization(code, language, data)
