"""設定モジュール: 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase ---
# 未設定でも import は通し、初回の DB アクセス時に失敗させる
SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.getenv("SUPABASE_SECRET_KEY", "")
SUPABASE_SCHEMA: str = os.getenv("SUPABASE_SCHEMA", "steam_history")

# --- Steam アカウント ---
STEAM_ID: str = os.getenv("STEAM_ID", "")
STEAM_LOGIN_SECURE: str = os.getenv("STEAM_LOGIN_SECURE", "")
STEAM_SESSION_ID: str = os.getenv("STEAM_SESSION_ID", "")
STEAM_LANGUAGE: str = os.getenv("STEAM_LANGUAGE", "english")
STEAM_WALLET_CURRENCY: int = int(os.getenv("STEAM_WALLET_CURRENCY", "1"))

# --- Steam エンドポイント ---
MARKET_HISTORY_URL = "https://steamcommunity.com/market/myhistory"
PURCHASE_HISTORY_URL = "https://store.steampowered.com/account/AjaxLoadMoreHistory"
CLASSINFO_URL_TEMPLATE = (
    "https://steamcommunity.com/economy/itemclasshover/{appid}/{classid}/{instanceid}"
)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

# --- リクエスト設定 ---
REQUEST_TIMEOUT = 30  # 秒
MARKET_PER_PAGE: int = int(os.getenv("MARKET_PER_PAGE", "100"))
MARKET_POLL_INTERVAL_SECONDS: float = float(os.getenv("MARKET_POLL_INTERVAL_SECONDS", "5"))
RETRY_DELAY_SECONDS = 15
REPEAT_REQUEST_LIMIT = 10
PURCHASE_HISTORY_DELAY_SECONDS = 3

# --- バックグラウンド取得 ---
BACKGROUND_POLL_BOOLEAN: bool = os.getenv("BACKGROUND_POLL_BOOLEAN", "1") == "1"
BACKGROUND_POLL_INTERVAL_MINUTES: int = int(os.getenv("BACKGROUND_POLL_INTERVAL_MINUTES", "60"))

# --- ログ ---
LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_DIR.mkdir(exist_ok=True)
