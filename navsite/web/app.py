"""Web API（Flask + SPA）

ナビゲーションサイトのJSON APIとフロントエンド配信。
起動: python -m navsite.cli.main web --port 3000
- JSON API: /api/* （書き込み系はBearerトークン必須）
- アップロード画像: /uploads/<filename>
- SPA: web/dist/ を / で配信（存在しないパスは index.html にフォールバック）

DBの初期化（スキーマ作成・初期データ投入）は起動側で済ませてから渡すこと。
"""

import logging
import os
import sqlite3
import time
from datetime import datetime
from typing import Any, Optional

from flask import Flask, g, jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

from navsite.auth.security import (
    hash_password,
    issue_token,
    login_required,
    verify_password,
)
from navsite.config import Settings, ensure_secret_key, load_settings
from navsite.db.database import Database, StoreBusyError

logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "svg", "ico", "webp"}


def display_logo(card):
    # type: (dict) -> str
    """カード表示用ロゴ: アップロード画像 > logo_url > サイトのfavicon"""
    if card.get("custom_logo_path"):
        return "/uploads/" + card["custom_logo_path"]
    if card.get("logo_url"):
        return card["logo_url"]
    return card["url"].rstrip("/") + "/favicon.ico"


def _to_int(value, default=0):
    # type: (Any, int) -> int
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def create_app(db_path=None, settings=None, database=None):
    # type: (Optional[str], Optional[Settings], Optional[Database]) -> Flask
    """Flaskアプリファクトリ"""
    settings = ensure_secret_key(settings or load_settings())
    if db_path:
        settings = settings._replace(db_path=db_path)

    app = Flask(__name__, static_folder=None)  # 静的ファイルはSPA用に別途設定
    app.config["NAV_SETTINGS"] = settings
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024

    db = database or Database(settings.db_path, settings.busy_timeout_ms)
    os.makedirs(settings.upload_dir, exist_ok=True)

    # --- CORS ---
    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
        return response

    # --- エラーハンドラ ---

    @app.errorhandler(StoreBusyError)
    def handle_store_busy(e):
        logger.warning(f"DBビジー: {e}")
        return jsonify({"error": "データベースが混雑しています。再試行してください",
                        "retryable": True}), 503

    @app.errorhandler(sqlite3.IntegrityError)
    def handle_integrity_error(e):
        return jsonify({"error": "制約違反: {}".format(e)}), 400

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("未処理の例外")
        return jsonify({"code": 500, "message": "サーバー内部エラー",
                        "error": str(e)}), 500

    def body():
        # type: () -> dict
        return request.get_json(silent=True) or {}

    # --- ヘルスチェック ---

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "time": datetime.now().isoformat()})

    # --- 認証 ---

    @app.route("/api/login", methods=["POST"])
    def api_login():
        """ログイン: トークンと前回ログイン情報を返す"""
        data = body()
        username = (data.get("username") or "").strip()
        password = data.get("password") or ""
        if not username or not password:
            return jsonify({"error": "usernameとpasswordは必須です"}), 400

        user = db.get_user_by_username(username)
        if not user or not verify_password(password, user["password"]):
            return jsonify({"error": "ユーザー名またはパスワードが違います"}), 401

        ip = request.headers.get("X-Forwarded-For", request.remote_addr or "")
        ip = ip.split(",")[0].strip() or None
        db.record_login(user["id"], ip)

        return jsonify({
            "token": issue_token(settings.secret_key, user["id"], user["username"]),
            "lastLoginTime": user["last_login_time"],
            "lastLoginIp": user["last_login_ip"],
        })

    @app.route("/api/users/me")
    @login_required
    def api_me():
        user = db.get_user(g.user["id"])
        if not user:
            return jsonify({"error": "ユーザーが存在しません"}), 404
        user.pop("password", None)
        return jsonify(user)

    @app.route("/api/users/password", methods=["PUT"])
    @login_required
    def api_change_password():
        data = body()
        old_password = data.get("oldPassword") or ""
        new_password = data.get("newPassword") or ""
        if not new_password:
            return jsonify({"error": "newPasswordは必須です"}), 400

        user = db.get_user(g.user["id"])
        if not user or not verify_password(old_password, user["password"]):
            return jsonify({"error": "現在のパスワードが違います"}), 400

        db.update_password(user["id"], hash_password(new_password))
        return jsonify({"success": True})

    # --- メニュー ---

    @app.route("/api/menus")
    def api_menus():
        return jsonify(db.get_menus())

    @app.route("/api/menus", methods=["POST"])
    @login_required
    def api_create_menu():
        data = body()
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"error": "nameは必須です"}), 400
        menu_id = db.create_menu(name, _to_int(data.get("order")))
        return jsonify({"id": menu_id})

    @app.route("/api/menus/<int:menu_id>", methods=["PUT"])
    @login_required
    def api_update_menu(menu_id):
        changed = db.update_menu(menu_id, body())
        return jsonify({"changed": changed})

    @app.route("/api/menus/<int:menu_id>", methods=["DELETE"])
    @login_required
    def api_delete_menu(menu_id):
        return jsonify({"deleted": db.delete_menu(menu_id)})

    # --- サブメニュー ---

    @app.route("/api/menus/<int:menu_id>/submenus")
    def api_sub_menus(menu_id):
        return jsonify(db.get_sub_menus(menu_id))

    @app.route("/api/menus/<int:menu_id>/submenus", methods=["POST"])
    @login_required
    def api_create_sub_menu(menu_id):
        data = body()
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"error": "nameは必須です"}), 400
        if not db.get_menu(menu_id):
            return jsonify({"error": "メニューID {} が見つかりません".format(menu_id)}), 404
        sub_id = db.create_sub_menu(menu_id, name, _to_int(data.get("order")))
        return jsonify({"id": sub_id})

    @app.route("/api/menus/submenus/<int:sub_menu_id>", methods=["PUT"])
    @login_required
    def api_update_sub_menu(sub_menu_id):
        return jsonify({"changed": db.update_sub_menu(sub_menu_id, body())})

    @app.route("/api/menus/submenus/<int:sub_menu_id>", methods=["DELETE"])
    @login_required
    def api_delete_sub_menu(sub_menu_id):
        return jsonify({"deleted": db.delete_sub_menu(sub_menu_id)})

    # --- カード ---

    @app.route("/api/cards/<int:menu_id>")
    def api_cards(menu_id):
        """メニュー直下のカード（subMenuId指定時はサブメニュー配下）"""
        sub_menu_id = request.args.get("subMenuId", type=int)
        cards = db.get_cards(menu_id=menu_id, sub_menu_id=sub_menu_id)
        for card in cards:
            card["display_logo"] = display_logo(card)
        return jsonify(cards)

    def _card_payload(data):
        # type: (dict) -> Optional[str]
        """カード入力の必須チェック。エラーメッセージ（正常ならNone）"""
        if not data.get("title") or not data.get("url"):
            return "titleとurlは必須です"
        if not data.get("menu_id") and not data.get("sub_menu_id"):
            return "menu_id または sub_menu_id の指定が必要です"
        return None

    @app.route("/api/cards", methods=["POST"])
    @login_required
    def api_create_card():
        data = body()
        error = _card_payload(data)
        if error:
            return jsonify({"error": error}), 400
        try:
            card_id = db.create_card(data)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"id": card_id})

    @app.route("/api/cards/<int:card_id>", methods=["PUT"])
    @login_required
    def api_update_card(card_id):
        data = body()
        error = _card_payload(data)
        if error:
            return jsonify({"error": error}), 400
        try:
            changed = db.update_card(card_id, data)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"changed": changed})

    @app.route("/api/cards/<int:card_id>", methods=["DELETE"])
    @login_required
    def api_delete_card(card_id):
        return jsonify({"deleted": db.delete_card(card_id)})

    # --- 友情リンク ---

    @app.route("/api/friends")
    def api_friends():
        return jsonify(db.get_friends())

    @app.route("/api/friends", methods=["POST"])
    @login_required
    def api_create_friend():
        data = body()
        if not data.get("title") or not data.get("url"):
            return jsonify({"error": "titleとurlは必須です"}), 400
        friend_id = db.create_friend(data["title"], data["url"], data.get("logo"))
        return jsonify({"id": friend_id})

    @app.route("/api/friends/<int:friend_id>", methods=["PUT"])
    @login_required
    def api_update_friend(friend_id):
        return jsonify({"changed": db.update_friend(friend_id, body())})

    @app.route("/api/friends/<int:friend_id>", methods=["DELETE"])
    @login_required
    def api_delete_friend(friend_id):
        return jsonify({"deleted": db.delete_friend(friend_id)})

    # --- 広告 ---

    @app.route("/api/ads")
    def api_ads():
        return jsonify(db.get_ads())

    @app.route("/api/ads", methods=["POST"])
    @login_required
    def api_create_ad():
        data = body()
        if not data.get("position") or not data.get("img"):
            return jsonify({"error": "positionとimgは必須です"}), 400
        ad_id = db.create_ad(data["position"], data["img"], data.get("url"))
        return jsonify({"id": ad_id})

    @app.route("/api/ads/<int:ad_id>", methods=["PUT"])
    @login_required
    def api_update_ad(ad_id):
        return jsonify({"changed": db.update_ad(ad_id, body())})

    @app.route("/api/ads/<int:ad_id>", methods=["DELETE"])
    @login_required
    def api_delete_ad(ad_id):
        return jsonify({"deleted": db.delete_ad(ad_id)})

    # --- アップロード ---

    @app.route("/api/upload", methods=["POST"])
    @login_required
    def api_upload():
        """ロゴ画像アップロード。保存ファイル名とURLを返す"""
        upload = request.files.get("logo")
        if upload is None or not upload.filename:
            return jsonify({"error": "logoファイルが必要です"}), 400

        filename = secure_filename(upload.filename)
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in ALLOWED_UPLOAD_EXTENSIONS:
            return jsonify({"error": "未対応のファイル形式です: {}".format(ext)}), 400

        stored = "{}_{}".format(int(time.time() * 1000), filename)
        upload.save(os.path.join(settings.upload_dir, stored))
        return jsonify({"filename": stored, "url": "/uploads/" + stored})

    @app.route("/uploads/<path:filename>")
    def serve_upload(filename):
        return send_from_directory(settings.upload_dir, filename)

    # --- SPA ---

    @app.route("/")
    @app.route("/<path:path>")
    def serve_spa(path=""):
        """SPA配信（存在しないパスは index.html にフォールバック）"""
        if path.startswith("api/") or path.startswith("uploads/"):
            return jsonify({"error": "Not Found"}), 404
        if path and os.path.isfile(os.path.join(settings.static_dir, path)):
            return send_from_directory(settings.static_dir, path)
        if not os.path.isfile(os.path.join(settings.static_dir, "index.html")):
            return jsonify({"error": "フロントエンド未ビルド"}), 404
        return send_from_directory(settings.static_dir, "index.html")

    return app
