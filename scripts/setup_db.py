"""DB初期化スクリプト

復元フック → テーブル作成 → 初期データ投入。冪等に実行可能。
コンテナ起動前などに直接実行: python scripts/setup_db.py
"""

import logging
import sys
from pathlib import Path

# プロジェクトルートをパスに追加
sys.path.insert(0, str(Path(__file__).parent.parent))

from navsite.config import load_settings
from navsite.db.database import Database, StoreError
from navsite.db.seeder import bootstrap, summarize

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def main():
    settings = load_settings()
    print(f"DB: {settings.db_path}")

    try:
        db = Database(settings.db_path, settings.busy_timeout_ms)
        report = bootstrap(db, settings)
    except (StoreError, OSError) as e:
        print(f"スキーマ作成失敗: {e}")
        sys.exit(1)

    for line in summarize(report):
        print(f"  {line}")

    # 統計
    stats = db.get_stats()
    print("\n--- DB統計 ---")
    for key, value in stats.items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
