"""SQLiteスキーマ定義

メニュー / サブメニュー / カード / ユーザー / 友情リンク / 広告 の6テーブル。
冪等に実行可能（IF NOT EXISTS）。
"""

# トップレベルメニュー
MENUS_TABLE = """
CREATE TABLE IF NOT EXISTS menus (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    name                TEXT NOT NULL,
    "order"             INTEGER DEFAULT 0,
    CHECK (name <> '')
);
"""

# サブメニュー（親メニュー削除でカスケード削除）
SUB_MENUS_TABLE = """
CREATE TABLE IF NOT EXISTS sub_menus (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_id           INTEGER NOT NULL
                        REFERENCES menus(id) ON DELETE CASCADE,
    name                TEXT NOT NULL,
    "order"             INTEGER DEFAULT 0,
    CHECK (name <> '')
);
"""

# カード（ブックマーク）。menu_id / sub_menu_id のどちらか一方のみ
CARDS_TABLE = """
CREATE TABLE IF NOT EXISTS cards (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    menu_id             INTEGER
                        REFERENCES menus(id) ON DELETE CASCADE,
    sub_menu_id         INTEGER
                        REFERENCES sub_menus(id) ON DELETE CASCADE,
    title               TEXT NOT NULL,
    url                 TEXT NOT NULL,
    logo_url            TEXT,
    custom_logo_path    TEXT,                     -- uploads/ 配下のファイル名
    desc                TEXT,
    "order"             INTEGER DEFAULT 0,
    CHECK ((menu_id IS NULL) <> (sub_menu_id IS NULL)),
    CHECK (title <> '' AND url <> '')
);
"""

# 管理ユーザー（passwordはハッシュのみ保存）
USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    username            TEXT UNIQUE NOT NULL,
    password            TEXT NOT NULL,
    last_login_time     DATETIME,
    last_login_ip       TEXT,
    CHECK (username <> '')
);
"""

# 友情リンク
FRIENDS_TABLE = """
CREATE TABLE IF NOT EXISTS friends (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    title               TEXT NOT NULL,
    url                 TEXT NOT NULL,
    logo                TEXT,
    CHECK (title <> '' AND url <> '')
);
"""

# 広告バナー
ADS_TABLE = """
CREATE TABLE IF NOT EXISTS ads (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    position            TEXT NOT NULL,            -- 'left','right' 等
    img                 TEXT NOT NULL,
    url                 TEXT
);
"""

# 全テーブル定義（作成順: 親テーブルが先）
ALL_TABLES = [
    ("menus", MENUS_TABLE),
    ("sub_menus", SUB_MENUS_TABLE),
    ("cards", CARDS_TABLE),
    ("users", USERS_TABLE),
    ("friends", FRIENDS_TABLE),
    ("ads", ADS_TABLE),
]

TABLE_NAMES = [name for name, _ in ALL_TABLES]

ALL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sub_menus_parent ON sub_menus(parent_id)",
    "CREATE INDEX IF NOT EXISTS idx_cards_menu ON cards(menu_id)",
    "CREATE INDEX IF NOT EXISTS idx_cards_sub_menu ON cards(sub_menu_id)",
]

# 旧バージョンのDBに後から追加されたカラム
MIGRATE_COLUMNS = [
    ("cards", "custom_logo_path", "TEXT"),
    ("users", "last_login_time", "DATETIME"),
    ("users", "last_login_ip", "TEXT"),
]
