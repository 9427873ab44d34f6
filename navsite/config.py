"""設定読み込み

優先順位: 環境変数 > config/config.yaml > デフォルト値。
config/.env が存在すれば先に読み込む（python-dotenv）。
"""

import logging
import os
import secrets
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

import yaml
from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).parent.parent
_ENV_PATH = _PROJECT_ROOT / "config" / ".env"
_CONFIG_PATH = _PROJECT_ROOT / "config" / "config.yaml"

DEFAULT_DB_PATH = str(_PROJECT_ROOT / "data" / "nav.db")
DEFAULT_UPLOAD_DIR = str(_PROJECT_ROOT / "uploads")
DEFAULT_STATIC_DIR = str(_PROJECT_ROOT / "web" / "dist")

logger = logging.getLogger(__name__)


class Settings(NamedTuple):
    db_path: str = DEFAULT_DB_PATH
    busy_timeout_ms: int = 5000
    admin_username: str = "admin"
    admin_password: str = "123456"
    secret_key: str = ""
    token_max_age: int = 7 * 24 * 3600
    upload_dir: str = DEFAULT_UPLOAD_DIR
    static_dir: str = DEFAULT_STATIC_DIR
    restore_url: Optional[str] = None
    port: int = 3000


# 環境変数名 → (Settings フィールド, 型)
_ENV_KEYS = {
    "NAV_DB_PATH": ("db_path", str),
    "NAV_BUSY_TIMEOUT_MS": ("busy_timeout_ms", int),
    "NAV_ADMIN_USERNAME": ("admin_username", str),
    "NAV_ADMIN_PASSWORD": ("admin_password", str),
    "NAV_SECRET_KEY": ("secret_key", str),
    "NAV_TOKEN_MAX_AGE": ("token_max_age", int),
    "NAV_UPLOAD_DIR": ("upload_dir", str),
    "NAV_STATIC_DIR": ("static_dir", str),
    "NAV_RESTORE_URL": ("restore_url", str),
    "PORT": ("port", int),
}


# Settings フィールド → 型（YAML・環境変数の両方に適用）
_FIELD_TYPES = {field: cast for field, cast in _ENV_KEYS.values()}


def _cast(field: str, raw: Any, source: str) -> Any:
    try:
        return _FIELD_TYPES[field](raw)
    except (TypeError, ValueError):
        raise ValueError(f"{source} の値が不正です: {raw!r}")


def _load_yaml(path: Path) -> Dict[str, Any]:
    """config.yamlの `nav:` セクションを読み込む（無ければ空dict）"""
    if not path.exists():
        return {}
    with open(path) as f:
        config = yaml.safe_load(f) or {}
    return config.get("nav", {}) or {}


def ensure_secret_key(settings: Settings) -> Settings:
    """secret_key未設定ならプロセスごとのランダム鍵を使う（再起動でトークン失効）"""
    if settings.secret_key:
        return settings
    logger.warning(
        "NAV_SECRET_KEY が未設定です。ランダム鍵を生成します"
        "（再起動でログイントークンは無効になります）"
    )
    return settings._replace(secret_key=secrets.token_urlsafe(32))


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """設定を組み立てて返す"""
    if _ENV_PATH.exists():
        load_dotenv(_ENV_PATH)

    values = {}  # type: Dict[str, Any]
    for key, value in _load_yaml(config_path or _CONFIG_PATH).items():
        if key in _FIELD_TYPES and value is not None:
            values[key] = _cast(key, value, f"config.yaml nav.{key}")

    for env_name, (field, _) in _ENV_KEYS.items():
        raw = os.environ.get(env_name)
        if raw:
            values[field] = _cast(field, raw, env_name)

    return ensure_secret_key(Settings(**values))
