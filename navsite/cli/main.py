"""CLIエントリポイント

使い方:
    python -m navsite.cli.main db init
    python -m navsite.cli.main db stats
    python -m navsite.cli.main db check-catalog
    python -m navsite.cli.main web --port 3000
"""

import logging
import os
import sys

import click
from rich.console import Console
from rich.table import Table

from navsite.config import load_settings
from navsite.db.database import Database, StoreError
from navsite.db.seed_catalog import validate_catalog
from navsite.db.seeder import bootstrap, summarize

console = Console()

# ログ設定
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def _open_database():
    # type: () -> Database
    settings = load_settings()
    return Database(settings.db_path, settings.busy_timeout_ms)


# --- メイングループ ---

@click.group()
def cli():
    """ナビゲーションサイト管理ツール"""
    pass


# --- db コマンド ---

@cli.group()
def db():
    """データベース管理"""
    pass


@db.command("init")
def db_init():
    """テーブル作成 + 初期データ投入（冪等）"""
    settings = load_settings()
    console.print(f"[bold]DB:[/bold] {settings.db_path}")

    try:
        database = Database(settings.db_path, settings.busy_timeout_ms)
        report = bootstrap(database, settings)
    except (StoreError, OSError) as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    if not report["seeded"]:
        console.print("  [dim]menus: 変更なし（既存データ維持）[/dim]")
    for line in summarize(report):
        console.print(f"  [cyan]{line}[/cyan]")
    for warning in report["warnings"]:
        console.print(f"  [yellow]! {warning}[/yellow]")

    console.print("[green]✓[/green] DB初期化完了")


@db.command("stats")
def db_stats():
    """DB統計を表示"""
    database = _open_database()

    if not os.path.exists(database.db_path):
        console.print("[red]DBが存在しません。先に `db init` を実行してください。[/red]")
        return

    stats = database.get_stats()

    table = Table(title="DB統計")
    table.add_column("テーブル", style="cyan")
    table.add_column("レコード数", justify="right")

    for key, value in stats.items():
        table.add_row(key, str(value))

    console.print(table)


@db.command("check-catalog")
def db_check_catalog():
    """初期データカタログの参照整合性を検査"""
    problems = validate_catalog()
    if not problems:
        console.print("[green]✓[/green] カタログ整合性OK")
        return

    for problem in problems:
        console.print(f"[red]✗[/red] {problem}")
    sys.exit(1)


# --- web コマンド ---

@cli.command("web")
@click.option("--host", default="0.0.0.0", help="バインドアドレス")
@click.option("--port", type=int, default=None, help="ポート（デフォルト: PORT環境変数 or 3000）")
@click.option("--debug", is_flag=True, help="Flaskデバッグモード")
def web(host, port, debug):
    """DB初期化後にWebサーバーを起動"""
    from navsite.web.app import create_app

    settings = load_settings()

    # スキーマ不明のままリクエストを受けない
    try:
        database = Database(settings.db_path, settings.busy_timeout_ms)
        bootstrap(database, settings)
    except (StoreError, OSError) as e:
        console.print(f"[red]✗ 起動中止: {e}[/red]")
        sys.exit(1)

    app = create_app(settings=settings, database=database)
    port = port or settings.port
    console.print(f"[bold]Server:[/bold] http://{host}:{port}  [dim]DB: {settings.db_path}[/dim]")
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    cli()
