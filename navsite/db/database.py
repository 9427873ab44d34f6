"""SQLiteデータベース接続管理

同期sqlite3を使用。Databaseインスタンスを起動時に1つ生成し、
シーダー・CLI・Webアプリへ明示的に渡す（モジュールグローバルは持たない）。
書き込みはSQLite側で直列化され、busy_timeoutで待ち合わせる。
"""

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from navsite.db.schema import (
    ALL_INDEXES,
    ALL_TABLES,
    MIGRATE_COLUMNS,
    TABLE_NAMES,
)


class StoreError(Exception):
    """ストア層の基底例外"""


class SchemaError(StoreError):
    """DBを開けない / DDL失敗。起動を中止すべき致命的エラー"""


class StoreBusyError(StoreError):
    """ロック待ちタイムアウト。リトライ可能"""


def _is_busy(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


class Database:
    """SQLiteデータベースマネージャー"""

    def __init__(self, db_path: str, busy_timeout_ms: int = 5000):
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        # dataディレクトリが存在しない場合は作成
        parent = os.path.dirname(db_path)
        if parent:
            try:
                os.makedirs(parent, exist_ok=True)
            except OSError as e:
                raise SchemaError(f"DBディレクトリを作成できません ({parent}): {e}") from e

    @contextmanager
    def connect(self):
        """コネクション管理（コンテキストマネージャー）

        正常終了でcommit、例外でrollback。ロック競合はStoreBusyErrorに変換。
        """
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout_ms / 1000)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA busy_timeout={}".format(int(self.busy_timeout_ms)))
            conn.execute("PRAGMA synchronous=NORMAL")
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            conn.rollback()
            if _is_busy(e):
                raise StoreBusyError(str(e)) from e
            raise
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # --- スキーマ / 初期化 ---

    def init_tables(self) -> List[str]:
        """全テーブルとインデックスを作成（冪等）。テーブル名リストを返す

        Raises:
            SchemaError: DBを開けない、またはDDLが失敗した場合（ロック待ちタイムアウトを含む）
        """
        created = []
        try:
            with self.connect() as conn:
                for name, sql in ALL_TABLES:
                    conn.execute(sql)
                    created.append(name)

                for sql in ALL_INDEXES:
                    conn.execute(sql)

                # 既存DBへのマイグレーション: 後から追加されたカラム
                for table, col_name, col_type in MIGRATE_COLUMNS:
                    existing = {
                        row["name"]
                        for row in conn.execute(f"PRAGMA table_info({table})")
                    }
                    if col_name not in existing:
                        conn.execute(
                            f"ALTER TABLE {table} ADD COLUMN {col_name} {col_type}"
                        )
        except (sqlite3.Error, StoreBusyError, OSError) as e:
            raise SchemaError(f"スキーマ作成失敗 ({self.db_path}): {e}") from e

        return created

    def count_rows(self, table: str) -> int:
        """テーブルのレコード数"""
        if table not in TABLE_NAMES:
            raise ValueError(f"未知のテーブル: {table}")
        with self.connect() as conn:
            row = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}").fetchone()
            return row["cnt"]

    def needs_seed(self, table: str = "menus") -> bool:
        """初期データ投入が必要か（アンカーテーブルが空ならTrue）"""
        return self.count_rows(table) == 0

    def get_stats(self) -> Dict[str, Any]:
        """全テーブルのレコード数を返す"""
        stats = {}
        with self.connect() as conn:
            for name in TABLE_NAMES:
                try:
                    row = conn.execute(
                        f"SELECT COUNT(*) as cnt FROM {name}"
                    ).fetchone()
                    stats[name] = row["cnt"]
                except sqlite3.OperationalError:
                    stats[name] = "テーブル未作成"
        return stats

    # --- 汎用実行 ---

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Dict[str, int]:
        """単一ステートメントを1トランザクションで実行

        Returns:
            {"lastrowid": int, "rowcount": int}
        """
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return {"lastrowid": cursor.lastrowid, "rowcount": cursor.rowcount}

    def execute_many(self, sql: str, rows: Iterable[Sequence[Any]]) -> int:
        """プリペアドステートメントをバッチ実行（1トランザクション）。影響行数を返す"""
        with self.connect() as conn:
            cursor = conn.executemany(sql, rows)
            return cursor.rowcount

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [dict(row) for row in rows]

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[dict]:
        with self.connect() as conn:
            row = conn.execute(sql, params).fetchone()
            return dict(row) if row else None

    def _update(self, table: str, row_id: int, updates: Dict[str, Any],
                allowed: Iterable[str]) -> int:
        """許可カラムのみ更新。影響行数を返す"""
        set_clauses = []
        params = []  # type: List[Any]
        for key, value in updates.items():
            if key not in allowed:
                continue
            set_clauses.append(f'"{key}" = ?')
            params.append(value)

        if not set_clauses:
            return 0

        params.append(row_id)
        result = self.execute(
            f"UPDATE {table} SET {', '.join(set_clauses)} WHERE id = ?",
            params,
        )
        return result["rowcount"]

    def _delete(self, table: str, row_id: int) -> int:
        return self.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))["rowcount"]

    # --- メニュー ---

    def get_menus(self) -> List[dict]:
        """メニュー一覧（各メニューにsubMenusを付与）"""
        with self.connect() as conn:
            menus = [
                dict(row) for row in conn.execute(
                    'SELECT * FROM menus ORDER BY "order", id'
                ).fetchall()
            ]
            subs = conn.execute(
                'SELECT * FROM sub_menus ORDER BY "order", id'
            ).fetchall()

        by_parent = {}  # type: Dict[int, List[dict]]
        for sub in subs:
            by_parent.setdefault(sub["parent_id"], []).append(dict(sub))
        for menu in menus:
            menu["subMenus"] = by_parent.get(menu["id"], [])
        return menus

    def get_menu(self, menu_id: int) -> Optional[dict]:
        return self.query_one("SELECT * FROM menus WHERE id = ?", (menu_id,))

    def create_menu(self, name: str, order: int = 0) -> int:
        result = self.execute(
            'INSERT INTO menus (name, "order") VALUES (?, ?)', (name, order)
        )
        return result["lastrowid"]

    def update_menu(self, menu_id: int, updates: Dict[str, Any]) -> int:
        return self._update("menus", menu_id, updates, {"name", "order"})

    def delete_menu(self, menu_id: int) -> int:
        """メニュー削除（サブメニュー・カードはカスケード削除）"""
        return self._delete("menus", menu_id)

    # --- サブメニュー ---

    def get_sub_menus(self, parent_id: int) -> List[dict]:
        return self.query(
            'SELECT * FROM sub_menus WHERE parent_id = ? ORDER BY "order", id',
            (parent_id,),
        )

    def get_sub_menu(self, sub_menu_id: int) -> Optional[dict]:
        return self.query_one(
            "SELECT * FROM sub_menus WHERE id = ?", (sub_menu_id,)
        )

    def create_sub_menu(self, parent_id: int, name: str, order: int = 0) -> int:
        result = self.execute(
            'INSERT INTO sub_menus (parent_id, name, "order") VALUES (?, ?, ?)',
            (parent_id, name, order),
        )
        return result["lastrowid"]

    def update_sub_menu(self, sub_menu_id: int, updates: Dict[str, Any]) -> int:
        return self._update("sub_menus", sub_menu_id, updates, {"name", "order"})

    def delete_sub_menu(self, sub_menu_id: int) -> int:
        """サブメニュー削除（配下カードはカスケード削除）"""
        return self._delete("sub_menus", sub_menu_id)

    # --- カード ---

    def get_cards(self, menu_id: Optional[int] = None,
                  sub_menu_id: Optional[int] = None) -> List[dict]:
        """メニュー直下、またはサブメニュー配下のカード一覧"""
        if sub_menu_id:
            return self.query(
                'SELECT * FROM cards WHERE sub_menu_id = ? ORDER BY "order", id',
                (sub_menu_id,),
            )
        return self.query(
            'SELECT * FROM cards WHERE menu_id = ? AND sub_menu_id IS NULL '
            'ORDER BY "order", id',
            (menu_id,),
        )

    def get_card(self, card_id: int) -> Optional[dict]:
        return self.query_one("SELECT * FROM cards WHERE id = ?", (card_id,))

    def _card_values(self, card: Dict[str, Any]) -> List[Any]:
        """カードの所属を正規化。sub_menu_id指定時はmenu_idをNULLにする"""
        sub_menu_id = card.get("sub_menu_id") or None
        menu_id = None if sub_menu_id else (card.get("menu_id") or None)
        if sub_menu_id is None and menu_id is None:
            raise ValueError("menu_id または sub_menu_id の指定が必要です")
        if sub_menu_id is not None and not self.get_sub_menu(sub_menu_id):
            raise ValueError("サブメニューが存在しません: {}".format(sub_menu_id))
        return [
            menu_id,
            sub_menu_id,
            card["title"],
            card["url"],
            card.get("logo_url"),
            card.get("custom_logo_path"),
            card.get("desc"),
            card.get("order") or 0,
        ]

    def create_card(self, card: Dict[str, Any]) -> int:
        """カード作成。カードIDを返す

        Raises:
            ValueError: 所属メニュー指定が不正
        """
        result = self.execute(
            """INSERT INTO cards
               (menu_id, sub_menu_id, title, url, logo_url,
                custom_logo_path, desc, "order")
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            self._card_values(card),
        )
        return result["lastrowid"]

    def update_card(self, card_id: int, card: Dict[str, Any]) -> int:
        """カード全項目を更新。影響行数を返す"""
        params = self._card_values(card)
        params.append(card_id)
        result = self.execute(
            """UPDATE cards SET
                menu_id = ?, sub_menu_id = ?, title = ?, url = ?,
                logo_url = ?, custom_logo_path = ?, desc = ?, "order" = ?
               WHERE id = ?""",
            params,
        )
        return result["rowcount"]

    def delete_card(self, card_id: int) -> int:
        return self._delete("cards", card_id)

    # --- ユーザー ---

    def get_user(self, user_id: int) -> Optional[dict]:
        return self.query_one("SELECT * FROM users WHERE id = ?", (user_id,))

    def get_user_by_username(self, username: str) -> Optional[dict]:
        return self.query_one(
            "SELECT * FROM users WHERE username = ?", (username,)
        )

    def record_login(self, user_id: int, ip: Optional[str]) -> str:
        """最終ログイン日時とIPを記録。記録した日時を返す"""
        now = datetime.now().isoformat(timespec="seconds")
        self.execute(
            "UPDATE users SET last_login_time = ?, last_login_ip = ? WHERE id = ?",
            (now, ip, user_id),
        )
        return now

    def update_password(self, user_id: int, password_hash: str) -> int:
        return self.execute(
            "UPDATE users SET password = ? WHERE id = ?", (password_hash, user_id)
        )["rowcount"]

    # --- 友情リンク ---

    def get_friends(self) -> List[dict]:
        return self.query("SELECT * FROM friends ORDER BY id")

    def create_friend(self, title: str, url: str, logo: Optional[str] = None) -> int:
        return self.execute(
            "INSERT INTO friends (title, url, logo) VALUES (?, ?, ?)",
            (title, url, logo),
        )["lastrowid"]

    def update_friend(self, friend_id: int, updates: Dict[str, Any]) -> int:
        return self._update("friends", friend_id, updates, {"title", "url", "logo"})

    def delete_friend(self, friend_id: int) -> int:
        return self._delete("friends", friend_id)

    # --- 広告 ---

    def get_ads(self) -> List[dict]:
        return self.query("SELECT * FROM ads ORDER BY id")

    def create_ad(self, position: str, img: str, url: Optional[str] = None) -> int:
        return self.execute(
            "INSERT INTO ads (position, img, url) VALUES (?, ?, ?)",
            (position, img, url),
        )["lastrowid"]

    def update_ad(self, ad_id: int, updates: Dict[str, Any]) -> int:
        return self._update("ads", ad_id, updates, {"position", "img", "url"})

    def delete_ad(self, ad_id: int) -> int:
        return self._delete("ads", ad_id)
