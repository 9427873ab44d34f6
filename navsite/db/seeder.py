"""初期データ投入（依存順シーダー）

空のDBに対して メニュー → サブメニュー → カード の順で投入する。
各段は1トランザクションで、コミット済み・ID確定後に次の段へ進む。
名前→IDのマップはseed_content()の呼び出し中だけ保持する。

個々のINSERT失敗はログに残してスキップし、同じ段の他の行は続行する。
親を解決できない行は投入せず警告を記録する。
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Sequence, Tuple

from navsite.auth.security import hash_password
from navsite.db.backup import restore_if_missing
from navsite.db.database import Database
from navsite.db.seed_catalog import (
    SEED_CARDS,
    SEED_FRIENDS,
    SEED_MENUS,
    SEED_SUB_MENUS,
    SeedCard,
    SeedSubMenu,
)

logger = logging.getLogger(__name__)

INSERT_MENU = 'INSERT INTO menus (name, "order") VALUES (?, ?)'
INSERT_SUB_MENU = 'INSERT INTO sub_menus (parent_id, name, "order") VALUES (?, ?, ?)'
INSERT_CARD = """INSERT INTO cards
    (menu_id, sub_menu_id, title, url, logo_url, desc, "order")
    VALUES (?, ?, ?, ?, ?, ?, ?)"""
INSERT_USER = "INSERT INTO users (username, password) VALUES (?, ?)"
INSERT_FRIEND = "INSERT INTO friends (title, url, logo) VALUES (?, ?, ?)"


def new_report() -> Dict[str, Any]:
    """投入結果の集計用dict"""
    tables = ("menus", "sub_menus", "cards", "users", "friends")
    return {
        "seeded": False,
        "inserted": {name: 0 for name in tables},
        "skipped": {name: 0 for name in tables},
        "warnings": [],
    }


class Seeder:
    """カタログを依存順にDBへ投入する"""

    def __init__(
        self,
        database: Database,
        menus: Sequence[Tuple[str, int]] = SEED_MENUS,
        sub_menus: Sequence[SeedSubMenu] = SEED_SUB_MENUS,
        cards: Sequence[SeedCard] = SEED_CARDS,
        friends: Sequence[Tuple[str, str, Optional[str]]] = SEED_FRIENDS,
    ):
        self.db = database
        self.menus = menus
        self.sub_menus = sub_menus
        self.cards = cards
        self.friends = friends

    def _warn(self, report: Dict[str, Any], table: str, message: str) -> None:
        logger.warning(message)
        report["warnings"].append(message)
        report["skipped"][table] += 1

    def _insert(self, conn: sqlite3.Connection, report: Dict[str, Any],
                table: str, sql: str, params: Tuple) -> Optional[int]:
        """1行INSERT。失敗時はステートメント・パラメータ・エラーを記録してNone"""
        try:
            cursor = conn.execute(sql, params)
        except sqlite3.Error as e:
            self._warn(
                report, table,
                f"{table} 投入失敗: {e} | SQL: {' '.join(sql.split())} | params: {params!r}",
            )
            return None
        report["inserted"][table] += 1
        return cursor.lastrowid

    def seed_content(self, report: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """メニュー → サブメニュー → カード を投入

        呼び出し側で needs_seed() を確認済みであること。
        """
        report = report if report is not None else new_report()
        report["seeded"] = True

        # 1. メニュー
        menu_ids = {}  # type: Dict[str, int]
        with self.db.connect() as conn:
            for name, order in self.menus:
                row_id = self._insert(conn, report, "menus", INSERT_MENU, (name, order))
                if row_id is not None:
                    menu_ids[name] = row_id
        logger.info(f"メニュー投入完了: {len(menu_ids)}件")

        # 2. サブメニュー（親メニューIDを解決してから投入）
        sub_menu_ids = {}  # type: Dict[str, int]
        with self.db.connect() as conn:
            for sub in self.sub_menus:
                parent_id = menu_ids.get(sub.parent)
                if parent_id is None:
                    self._warn(
                        report, "sub_menus",
                        f"サブメニュー {sub.key} ({sub.name}) をスキップ: "
                        f"親メニュー未解決 {sub.parent}",
                    )
                    continue
                row_id = self._insert(
                    conn, report, "sub_menus", INSERT_SUB_MENU,
                    (parent_id, sub.name, sub.order),
                )
                if row_id is not None:
                    sub_menu_ids[sub.key] = row_id
        logger.info(f"サブメニュー投入完了: {len(sub_menu_ids)}件")

        # 3. カード（メニュー名 or サブメニューkeyで解決）
        with self.db.connect() as conn:
            for card in self.cards:
                menu_id, sub_menu_id = self._resolve_card(card, menu_ids, sub_menu_ids)
                if menu_id is None and sub_menu_id is None:
                    target = card.sub_menu or card.menu
                    self._warn(
                        report, "cards",
                        f"カード {card.title} をスキップ: 所属先未解決 {target}",
                    )
                    continue
                self._insert(
                    conn, report, "cards", INSERT_CARD,
                    (menu_id, sub_menu_id, card.title, card.url,
                     card.logo_url, card.desc, card.order),
                )
        logger.info(f"カード投入完了: {report['inserted']['cards']}件")

        return report

    @staticmethod
    def _resolve_card(card: SeedCard, menu_ids: Dict[str, int],
                      sub_menu_ids: Dict[str, int]) -> Tuple[Optional[int], Optional[int]]:
        """(menu_id, sub_menu_id) を返す。両方/どちらも未指定なら未解決扱い"""
        if bool(card.menu) == bool(card.sub_menu):
            return None, None
        if card.sub_menu:
            return None, sub_menu_ids.get(card.sub_menu)
        return menu_ids.get(card.menu), None

    def seed_admin(self, username: str, password: str,
                   report: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """usersが空の場合のみ管理者を作成（パスワードはハッシュ化）"""
        report = report if report is not None else new_report()
        if not self.db.needs_seed("users"):
            return report

        with self.db.connect() as conn:
            self._insert(
                conn, report, "users", INSERT_USER,
                (username, hash_password(password)),
            )
        logger.info(f"管理者ユーザー作成: {username}")
        return report

    def seed_friends(self, report: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """friendsが空の場合のみ友情リンクを投入"""
        report = report if report is not None else new_report()
        if not self.db.needs_seed("friends"):
            return report

        with self.db.connect() as conn:
            for title, url, logo in self.friends:
                self._insert(conn, report, "friends", INSERT_FRIEND, (title, url, logo))
        logger.info(f"友情リンク投入完了: {report['inserted']['friends']}件")
        return report

    def seed(self, admin_username: str, admin_password: str) -> Dict[str, Any]:
        """全段を実行。コンテンツはmenusが空の場合のみ投入する"""
        report = new_report()
        if self.db.needs_seed("menus"):
            logger.info("DBが空のため初期データを投入します")
            self.seed_content(report)
        else:
            logger.info("menusにデータがあるためコンテンツ投入をスキップ")
        self.seed_admin(admin_username, admin_password, report)
        self.seed_friends(report)
        return report


def bootstrap(database: Database, settings: Any,
              seeder: Optional[Seeder] = None) -> Dict[str, Any]:
    """起動時初期化: 復元 → スキーマ作成 → 空チェック → 初期データ投入

    Raises:
        SchemaError: スキーマ作成に失敗した場合（起動を中止すること）
    """
    restore_if_missing(database.db_path, settings.restore_url)

    tables = database.init_tables()
    logger.info(f"テーブル確認完了: {', '.join(tables)}")

    seeder = seeder or Seeder(database)
    report = seeder.seed(settings.admin_username, settings.admin_password)

    if report["warnings"]:
        logger.warning(f"初期データ投入で {len(report['warnings'])} 件の警告")
    return report


def summarize(report: Dict[str, Any]) -> List[str]:
    """レポートを表示用の行リストに整形"""
    lines = []
    for table, count in report["inserted"].items():
        skipped = report["skipped"][table]
        line = f"{table}: {count}件追加"
        if skipped:
            line += f"（{skipped}件スキップ）"
        lines.append(line)
    return lines
