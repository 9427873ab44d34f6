"""初期データ投入テスト

- 空DBへの投入件数がカタログと一致
- 親IDの解決（ぶら下がりIDなし）
- 2回目の起動で重複しない
- 未解決の親はスキップ + 警告
- 管理者パスワードはハッシュのみ保存
- users / friends は独立して判定
"""

import os
import tempfile

import pytest

from navsite.auth.security import verify_password
from navsite.config import Settings
from navsite.db.database import Database
from navsite.db.seed_catalog import (
    SEED_CARDS,
    SEED_FRIENDS,
    SEED_MENUS,
    SEED_SUB_MENUS,
    SeedCard,
    SeedSubMenu,
)
from navsite.db.seeder import Seeder, bootstrap


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmp:
        yield os.path.join(tmp, "nav.db")


@pytest.fixture
def settings(db_path):
    return Settings(db_path=db_path, admin_username="admin", admin_password="s3cret")


@pytest.fixture
def db(settings):
    return Database(settings.db_path)


class TestBootstrapFreshStore:
    """空DBへの初回投入"""

    def test_counts_match_catalog(self, db, settings):
        report = bootstrap(db, settings)

        stats = db.get_stats()
        assert stats["menus"] == len(SEED_MENUS)
        assert stats["sub_menus"] == len(SEED_SUB_MENUS)
        assert stats["cards"] == len(SEED_CARDS)
        assert stats["users"] == 1
        assert stats["friends"] == len(SEED_FRIENDS)
        assert report["seeded"] is True
        assert report["warnings"] == []

    def test_sub_menu_parents_resolve(self, db, settings):
        bootstrap(db, settings)
        dangling = db.query(
            """SELECT s.id FROM sub_menus s
               LEFT JOIN menus m ON s.parent_id = m.id
               WHERE m.id IS NULL"""
        )
        assert dangling == []

    def test_cards_have_exactly_one_owner(self, db, settings):
        bootstrap(db, settings)
        for card in db.query("SELECT * FROM cards"):
            assert (card["menu_id"] is None) != (card["sub_menu_id"] is None)

    def test_menus_inserted_in_catalog_order(self, db, settings):
        bootstrap(db, settings)
        rows = db.query("SELECT name FROM menus ORDER BY id")
        assert [r["name"] for r in rows] == [name for name, _ in SEED_MENUS]

    def test_json_formatter_parent_chain(self, db, settings):
        """JSON formatter → Dev Tools → Tools"""
        bootstrap(db, settings)

        tools = db.query_one('SELECT * FROM menus WHERE name = ?', ("Tools",))
        assert tools["order"] == 5
        dev_tools = db.query_one(
            "SELECT * FROM sub_menus WHERE name = ?", ("Dev Tools",)
        )
        assert dev_tools["parent_id"] == tools["id"]
        assert dev_tools["order"] == 1

        cards = db.get_cards(sub_menu_id=dev_tools["id"])
        assert len(cards) == 1
        assert cards[0]["title"] == "JSON formatter"

    def test_admin_password_hashed(self, db, settings):
        bootstrap(db, settings)
        user = db.get_user_by_username("admin")
        assert user is not None
        assert user["password"] != "s3cret"
        assert verify_password("s3cret", user["password"])
        assert not verify_password("wrong", user["password"])


class TestIdempotency:
    """2回目の起動"""

    def test_second_bootstrap_adds_nothing(self, db, settings):
        bootstrap(db, settings)
        first = db.get_stats()

        assert db.needs_seed() is False
        report = bootstrap(db, settings)

        assert db.get_stats() == first
        assert report["seeded"] is False
        assert sum(report["inserted"].values()) == 0

    def test_partial_wipe_not_repaired(self, db, settings):
        """sub_menusだけ消してもメニューがあれば再投入しない"""
        bootstrap(db, settings)
        db.execute("DELETE FROM sub_menus")

        bootstrap(db, settings)
        assert db.count_rows("sub_menus") == 0
        assert db.count_rows("menus") == len(SEED_MENUS)

    def test_content_reset_keeps_credentials(self, db, settings):
        """コンテンツを空にしても管理者は再作成しない"""
        bootstrap(db, settings)
        db.execute("DELETE FROM menus")
        original = db.get_user_by_username("admin")

        bootstrap(db, settings._replace(admin_password="other"))

        assert db.count_rows("menus") == len(SEED_MENUS)
        assert db.count_rows("users") == 1
        assert db.get_user_by_username("admin")["password"] == original["password"]

    def test_users_seeded_independently(self, db, settings):
        """menusがあってもusersが空なら管理者を作成"""
        db.init_tables()
        db.create_menu("Custom", 1)

        report = bootstrap(db, settings)

        assert report["seeded"] is False
        assert db.count_rows("menus") == 1
        assert db.count_rows("users") == 1
        assert db.count_rows("friends") == len(SEED_FRIENDS)


class TestUnresolvedReferences:
    """カタログの参照不整合"""

    def test_missing_parent_menu_skipped(self, db):
        db.init_tables()
        seeder = Seeder(
            db,
            menus=[("Tools", 5)],
            sub_menus=[
                SeedSubMenu("dev-tools", "Tools", "Dev Tools", 1),
                SeedSubMenu("ghost", "Nonexistent", "Ghost", 1),
            ],
            cards=[
                SeedCard("JSON formatter", "https://jsonformatter.org", sub_menu="dev-tools"),
                SeedCard("Haunted", "https://ghost.example", sub_menu="ghost"),
            ],
        )

        report = seeder.seed_content()

        assert db.count_rows("sub_menus") == 1
        assert db.count_rows("cards") == 1
        assert db.query_one("SELECT * FROM sub_menus WHERE name = ?", ("Ghost",)) is None
        assert report["skipped"]["sub_menus"] == 1
        assert report["skipped"]["cards"] == 1
        assert any("Nonexistent" in w for w in report["warnings"])

    def test_same_sub_menu_name_under_two_parents(self, db):
        """同名サブメニューでもkeyで正しい親に解決"""
        db.init_tables()
        seeder = Seeder(
            db,
            menus=[("Software", 4), ("Tools", 5)],
            sub_menus=[
                SeedSubMenu("software-misc", "Software", "Misc", 1),
                SeedSubMenu("tools-misc", "Tools", "Misc", 1),
            ],
            cards=[SeedCard("Wrench", "https://wrench.example", sub_menu="tools-misc")],
        )
        seeder.seed_content()

        card = db.query_one("SELECT * FROM cards WHERE title = ?", ("Wrench",))
        sub = db.get_sub_menu(card["sub_menu_id"])
        menu = db.get_menu(sub["parent_id"])
        assert menu["name"] == "Tools"

    def test_failed_menu_insert_skips_dependents(self, db):
        """メニュー投入失敗時、依存する行はスキップし他は続行"""
        db.init_tables()
        seeder = Seeder(
            db,
            menus=[(None, 1), ("Home", 2)],
            sub_menus=[SeedSubMenu("child", None, "Child", 1)],
            cards=[
                SeedCard("Orphan", "https://orphan.example", sub_menu="child"),
                SeedCard("GitHub", "https://github.com", menu="Home"),
            ],
        )

        report = seeder.seed_content()

        assert db.count_rows("menus") == 1
        assert db.count_rows("sub_menus") == 0
        assert [c["title"] for c in db.query("SELECT title FROM cards")] == ["GitHub"]
        assert report["skipped"]["menus"] == 1
        assert any("SQL:" in w and "params:" in w for w in report["warnings"])

    def test_card_with_both_targets_skipped(self, db):
        db.init_tables()
        seeder = Seeder(
            db,
            menus=[("Home", 1)],
            sub_menus=[SeedSubMenu("sub", "Home", "Sub", 1)],
            cards=[SeedCard("Both", "https://both.example", menu="Home", sub_menu="sub")],
        )
        report = seeder.seed_content()
        assert db.count_rows("cards") == 0
        assert report["skipped"]["cards"] == 1


class TestMalformedCatalogRows:
    """空のtitle/url/nameを持つカタログ行"""

    def test_empty_card_skipped_with_warning(self, db):
        db.init_tables()
        seeder = Seeder(
            db,
            menus=[("Home", 1)],
            sub_menus=[],
            cards=[
                SeedCard("", "", menu="Home"),
                SeedCard("GitHub", "https://github.com", menu="Home"),
            ],
        )

        report = seeder.seed_content()

        assert [c["title"] for c in db.query("SELECT title FROM cards")] == ["GitHub"]
        assert report["skipped"]["cards"] == 1
        assert len(report["warnings"]) == 1

    def test_empty_menu_name_skips_dependents(self, db):
        db.init_tables()
        seeder = Seeder(
            db,
            menus=[("", 1), ("Tools", 5)],
            sub_menus=[SeedSubMenu("blank", "", "Child", 1)],
            cards=[SeedCard("Wrench", "https://wrench.example", menu="Tools")],
        )

        report = seeder.seed_content()

        assert db.count_rows("menus") == 1
        assert db.count_rows("sub_menus") == 0
        assert db.count_rows("cards") == 1
        assert report["skipped"]["menus"] == 1
        assert report["skipped"]["sub_menus"] == 1
