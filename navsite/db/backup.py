"""リモートバックアップからのDB復元

起動時、スキーマ作成より前に呼ばれる。ローカルにDBファイルが無い場合のみ
NAV_RESTORE_URL からDBイメージをダウンロードして配置する。
復元後もスキーマ作成・空チェックは通常通り実行され、既存データに対しては何もしない。
"""

import logging
import os
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"


def restore_if_missing(db_path: str, url: Optional[str], timeout: float = 30) -> bool:
    """DBファイルが存在しなければバックアップを復元。復元した場合True

    ダウンロード失敗時は警告ログを出して空DBで起動を続ける。
    """
    if not url:
        return False

    if os.path.exists(db_path) and os.path.getsize(db_path) > 0:
        logger.info(f"既存DBがあるため復元をスキップ: {db_path}")
        return False

    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"バックアップ復元失敗（空DBで起動）: {url}: {e}")
        return False

    # SQLiteファイル以外（プロキシのHTML等）は書き込まない
    if not response.content.startswith(SQLITE_HEADER):
        logger.warning(f"バックアップがSQLite形式ではありません（空DBで起動）: {url}")
        return False

    parent = os.path.dirname(db_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    tmp_path = db_path + ".restore"
    with open(tmp_path, "wb") as f:
        f.write(response.content)
    os.replace(tmp_path, db_path)

    logger.info(f"バックアップから復元: {url} -> {db_path} ({len(response.content)} bytes)")
    return True
