"""localization モジュールのユニットテスト."""

from datetime import date

import pytest

from steam_history.errors import DateParseError, LanguageNotConfigured
from steam_history.localization import LANGUAGE_CODES, LOCALES_DIR, get_localization
from steam_history.models import ParsedDate, TransactionType


class TestGetLocalization:
    """get_localization のテスト."""

    def test_english(self):
        localization = get_localization("english")
        assert localization.code == "en"
        assert localization.language == "english"

    def test_cached(self):
        assert get_localization("german") is get_localization("german")

    def test_unknown_language(self):
        with pytest.raises(LanguageNotConfigured):
            get_localization("klingon")

    def test_code_without_locale_file(self):
        """言語名は既知でもロケールファイルが無ければ失敗すること."""
        assert LANGUAGE_CODES["bulgarian"] == "bg"
        with pytest.raises(LanguageNotConfigured, match="bulgarian"):
            get_localization("bulgarian")

    def test_all_locales_have_twelve_months(self):
        for path in LOCALES_DIR.glob("*.json"):
            language = next(k for k, v in LANGUAGE_CODES.items() if v == path.stem)
            localization = get_localization(language)
            assert len(localization._month_patterns) == 12, path.name


class TestParseDateString:
    """parse_date_string のテスト."""

    @pytest.mark.parametrize(
        "language, text, expected",
        [
            ("english", "Mar 30", ParsedDate(month=2, day=30)),
            ("english", "Dec 1", ParsedDate(month=11, day=1)),
            ("german", "30. Okt.", ParsedDate(month=9, day=30)),
            ("french", "5 févr.", ParsedDate(month=1, day=5)),
            ("russian", "12 мая", ParsedDate(month=4, day=12)),
            ("japanese", "3月30日", ParsedDate(month=2, day=30)),
            ("tchinese", "1 月 27 日", ParsedDate(month=0, day=27)),
            ("koreana", "2019년 1월 27일", ParsedDate(month=0, day=27, year=2019)),
            ("finnish", "31.4.", ParsedDate(month=3, day=31)),
        ],
    )
    def test_languages(self, language, text, expected):
        assert get_localization(language).parse_date_string(text) == expected

    def test_invalid(self):
        with pytest.raises(DateParseError):
            get_localization("english").parse_date_string("yesterday")

    def test_missing_day(self):
        with pytest.raises(DateParseError):
            get_localization("english").parse_date_string("Mar")


class TestParseFullDate:
    """parse_full_date のテスト."""

    def test_english(self):
        assert get_localization("english").parse_full_date("Mar 30, 2019") == date(2019, 3, 30)

    def test_korean(self):
        assert get_localization("koreana").parse_full_date("2019년 1월 27일") == date(2019, 1, 27)

    def test_japanese(self):
        assert get_localization("japanese").parse_full_date("2019年3月30日") == date(2019, 3, 30)

    def test_without_year(self):
        with pytest.raises(DateParseError):
            get_localization("english").parse_full_date("Mar 30")


class TestToDateString:
    """to_date_string のテスト."""

    def test_formats(self):
        value = date(2019, 3, 30)
        assert get_localization("english").to_date_string(value) == "Mar 30"
        assert get_localization("japanese").to_date_string(value) == "3月30日"
        assert get_localization("finnish").to_date_string(value) == "30.3."
        assert get_localization("koreana").to_date_string(value) == "2019년 3월 30일"

    def test_parses_back(self):
        localization = get_localization("english")
        text = localization.to_date_string(date(2019, 11, 4))
        assert localization.parse_date_string(text) == ParsedDate(month=10, day=4)


class TestTransactionType:
    """transaction_type のテスト."""

    def test_singular_and_plural(self):
        localization = get_localization("english")
        assert localization.transaction_type("Market Transaction") == TransactionType.MARKET_TRANSACTION
        assert localization.transaction_type("Market Transactions") == TransactionType.MARKET_TRANSACTION
        assert localization.transaction_type("Refund") == TransactionType.REFUND

    def test_unknown(self):
        assert get_localization("english").transaction_type("Something Else") is None
