"""初期データカタログの整合性テスト"""

from navsite.db.seed_catalog import (
    SEED_CARDS,
    SEED_MENUS,
    SEED_SUB_MENUS,
    SeedCard,
    SeedSubMenu,
    validate_catalog,
)


def test_shipped_catalog_is_consistent():
    """同梱カタログに参照不整合がない"""
    assert validate_catalog() == []


def test_every_card_has_one_target():
    for card in SEED_CARDS:
        assert bool(card.menu) != bool(card.sub_menu), card.title


def test_sub_menu_keys_unique():
    keys = [sub.key for sub in SEED_SUB_MENUS]
    assert len(keys) == len(set(keys))


def test_tools_dev_tools_json_formatter():
    """Tools(5) → Dev Tools(1) → JSON formatter"""
    assert ("Tools", 5) in SEED_MENUS
    dev_tools = [s for s in SEED_SUB_MENUS if s.name == "Dev Tools"]
    assert len(dev_tools) == 1
    assert dev_tools[0].parent == "Tools"
    assert dev_tools[0].order == 1
    formatter = [c for c in SEED_CARDS if c.title == "JSON formatter"]
    assert formatter[0].sub_menu == dev_tools[0].key


def test_detects_unknown_parent():
    problems = validate_catalog(
        menus=[("Tools", 5)],
        sub_menus=[SeedSubMenu("x", "Nonexistent", "X", 1)],
        cards=[],
    )
    assert len(problems) == 1
    assert "Nonexistent" in problems[0]


def test_detects_duplicates():
    problems = validate_catalog(
        menus=[("Home", 1), ("Home", 2)],
        sub_menus=[
            SeedSubMenu("a", "Home", "A", 1),
            SeedSubMenu("a", "Home", "B", 2),
        ],
        cards=[],
    )
    assert len(problems) == 2


def test_detects_bad_card_targets():
    problems = validate_catalog(
        menus=[("Home", 1)],
        sub_menus=[],
        cards=[
            SeedCard("Neither", "https://n.example"),
            SeedCard("Missing menu", "https://m.example", menu="Away"),
            SeedCard("Missing sub", "https://s.example", sub_menu="nope"),
            SeedCard("Fine", "https://f.example", menu="Home"),
        ],
    )
    assert len(problems) == 3
