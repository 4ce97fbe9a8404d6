"""scraper モジュールのユニットテスト (HTTP はモック)."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from steam_history.config import MARKET_HISTORY_URL, PURCHASE_HISTORY_URL
from steam_history.errors import CollectorError, RetryableFetchError
from steam_history.scraper import (
    fetch_classinfo,
    fetch_listings_page,
    fetch_purchase_history,
)


def _session(body=None, exc=None):
    session = MagicMock()
    if exc is not None:
        session.request.side_effect = exc
    else:
        resp = MagicMock()
        resp.json.return_value = body
        session.request.return_value = resp
    return session


class TestFetchListingsPage:
    """fetch_listings_page のテスト."""

    @patch("steam_history.scraper.get_session")
    def test_success(self, mock_get_session):
        body = {"success": True, "total_count": 10, "start": 0, "results_html": ""}
        session = _session(body)
        mock_get_session.return_value = session

        assert fetch_listings_page(100, 50, "german") == body

        method, url = session.request.call_args.args
        assert (method, url) == ("GET", MARKET_HISTORY_URL)
        assert session.request.call_args.kwargs["params"] == {
            "start": 100, "count": 50, "l": "german", "norender": 0,
        }

    @patch("steam_history.scraper.get_session")
    def test_unsuccessful_body(self, mock_get_session):
        """success が false なら再試行可能なエラーにすること."""
        mock_get_session.return_value = _session({"success": False})

        with pytest.raises(RetryableFetchError):
            fetch_listings_page(0, 100, "english")

    @patch("steam_history.scraper.get_session")
    def test_network_error(self, mock_get_session):
        mock_get_session.return_value = _session(exc=requests.ConnectionError("reset"))

        with pytest.raises(RetryableFetchError, match="reset"):
            fetch_listings_page(0, 100, "english")

    @patch("steam_history.scraper.get_session")
    def test_http_error(self, mock_get_session):
        session = _session({})
        session.request.return_value.raise_for_status.side_effect = requests.HTTPError("429")
        mock_get_session.return_value = session

        with pytest.raises(RetryableFetchError):
            fetch_listings_page(0, 100, "english")

    @patch("steam_history.scraper.get_session")
    def test_invalid_json(self, mock_get_session):
        session = _session()
        session.request.return_value.json.side_effect = ValueError("Expecting value")
        mock_get_session.return_value = session

        with pytest.raises(RetryableFetchError, match="Invalid JSON"):
            fetch_listings_page(0, 100, "english")


class TestFetchPurchaseHistory:
    """fetch_purchase_history のテスト."""

    @patch("steam_history.scraper.get_session")
    def test_cursor_fields(self, mock_get_session):
        """cursor はフォームの cursor[...] に展開すること."""
        session = _session({"html": "", "cursor": None})
        mock_get_session.return_value = session

        fetch_purchase_history("abc", {"wallet_txnid": "123", "timestamp_newest": "1553904000"})

        method, url = session.request.call_args.args
        assert (method, url) == ("POST", PURCHASE_HISTORY_URL)
        assert session.request.call_args.kwargs["data"] == {
            "sessionid": "abc",
            "cursor[wallet_txnid]": "123",
            "cursor[timestamp_newest]": "1553904000",
        }

    @patch("steam_history.scraper.get_session")
    def test_without_cursor(self, mock_get_session):
        session = _session({"html": ""})
        mock_get_session.return_value = session

        fetch_purchase_history("abc")

        assert session.request.call_args.kwargs["data"] == {"sessionid": "abc"}


class TestFetchClassinfo:
    """fetch_classinfo のテスト."""

    HOVER_TEXT = (
        "<script>\n"
        "BuildHover( 'economy_item_0', "
        '{"name":"AK-47 | Redline","type":"Classified Rifle","appid":730} );\n'
        "</script>"
    )

    @patch("steam_history.scraper.get_session")
    def test_parse_hover(self, mock_get_session):
        """BuildHover の引数から説明を取り出すこと."""
        session = _session()
        session.request.return_value.text = self.HOVER_TEXT
        mock_get_session.return_value = session

        item = fetch_classinfo("730", "310776", "0", "german")

        assert item == {"name": "AK-47 | Redline", "type": "Classified Rifle", "appid": 730}
        _, url = session.request.call_args.args
        assert url.endswith("/economy/itemclasshover/730/310776/0")
        assert session.request.call_args.kwargs["params"] == {"content_only": 1, "l": "german"}

    @patch("steam_history.scraper.get_session")
    def test_no_hover(self, mock_get_session):
        session = _session()
        session.request.return_value.text = "<html>Error</html>"
        mock_get_session.return_value = session

        with pytest.raises(CollectorError, match="Failed to parse asset"):
            fetch_classinfo("730", "310776", "0")

    @patch("steam_history.scraper.get_session")
    def test_broken_json(self, mock_get_session):
        session = _session()
        session.request.return_value.text = "BuildHover( 'economy_item_0', {\"name\": ); "
        mock_get_session.return_value = session

        with pytest.raises(CollectorError, match="Failed to parse asset"):
            fetch_classinfo("730", "310776", "0")
