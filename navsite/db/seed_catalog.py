"""初期データカタログ

空のDBに投入するデフォルトのメニュー・サブメニュー・カード・友情リンク。
参照は必ず前方で宣言済みの名前/キーを指すこと（validate_catalogで検査）。
管理者の認証情報はカタログではなく設定（NAV_ADMIN_*）から取得する。
"""

from typing import List, NamedTuple, Optional, Sequence, Tuple


class SeedSubMenu(NamedTuple):
    """サブメニュー定義。keyはカタログ内で一意な識別子"""

    key: str
    parent: str
    name: str
    order: int = 0


class SeedCard(NamedTuple):
    """カード定義。menu（メニュー名）かsub_menu（サブメニューkey）の一方のみ指定"""

    title: str
    url: str
    menu: Optional[str] = None
    sub_menu: Optional[str] = None
    logo_url: Optional[str] = None
    desc: Optional[str] = None
    order: int = 0


# (name, order)
SEED_MENUS = [
    ("Home", 1),
    ("Ai Stuff", 2),
    ("Cloud", 3),
    ("Software", 4),
    ("Tools", 5),
    ("Other", 6),
]  # type: List[Tuple[str, int]]

SEED_SUB_MENUS = [
    SeedSubMenu("ai-chat", "Ai Stuff", "AI chat", 1),
    SeedSubMenu("ai-tools", "Ai Stuff", "AI tools", 2),
    SeedSubMenu("dev-tools", "Tools", "Dev Tools", 1),
    SeedSubMenu("mac", "Software", "Mac", 1),
    SeedSubMenu("windows", "Software", "Windows", 4),
]

SEED_CARDS = [
    SeedCard("Baidu", "https://www.baidu.com", menu="Home",
             desc="搜索引擎", order=1),
    SeedCard("YouTube", "https://www.youtube.com", menu="Home",
             desc="视频", order=2),
    SeedCard("GitHub", "https://github.com", menu="Home",
             desc="代码托管", order=3),
    SeedCard("DeepSeek", "https://www.deepseek.com", sub_menu="ai-chat",
             desc="AI 搜索", order=1),
    SeedCard("JSON formatter", "https://jsonformatter.org", sub_menu="dev-tools",
             desc="JSON 格式化", order=1),
]

# (title, url, logo)
SEED_FRIENDS = [
    ("GitHub", "https://github.com", "https://github.com/favicon.ico"),
]


def validate_catalog(
    menus: Sequence[Tuple[str, int]] = SEED_MENUS,
    sub_menus: Sequence[SeedSubMenu] = SEED_SUB_MENUS,
    cards: Sequence[SeedCard] = SEED_CARDS,
) -> List[str]:
    """カタログの整合性を検査し、問題点のリストを返す（空なら正常）"""
    problems = []

    menu_names = set()
    for name, _ in menus:
        if not name:
            problems.append("メニュー名が空です")
        elif name in menu_names:
            problems.append(f"メニュー名が重複: {name}")
        menu_names.add(name)

    sub_keys = set()
    for sub in sub_menus:
        if sub.key in sub_keys:
            problems.append(f"サブメニューkeyが重複: {sub.key}")
        sub_keys.add(sub.key)
        if sub.parent not in menu_names:
            problems.append(
                f"サブメニュー {sub.key} の親メニューが未定義: {sub.parent}"
            )

    for card in cards:
        if not card.title or not card.url:
            problems.append(f"カードのtitle/urlが空: {card!r}")
        if bool(card.menu) == bool(card.sub_menu):
            problems.append(
                f"カード {card.title} はmenuかsub_menuの一方のみ指定が必要"
            )
        elif card.menu and card.menu not in menu_names:
            problems.append(f"カード {card.title} のメニューが未定義: {card.menu}")
        elif card.sub_menu and card.sub_menu not in sub_keys:
            problems.append(
                f"カード {card.title} のサブメニューが未定義: {card.sub_menu}"
            )

    return problems
