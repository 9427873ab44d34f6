"""認証ユーティリティ

- パスワードハッシュ（werkzeug.security、平文は保存しない）
- Bearerトークン発行・検証（itsdangerous の署名付きタイムスタンプ）
- Flaskルート用 login_required デコレータ
"""

import functools
from typing import Optional

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

_TOKEN_SALT = "navsite-auth"


def hash_password(password: str) -> str:
    """パスワードハッシュ"""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """パスワード検証"""
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def issue_token(secret_key: str, user_id: int, username: str) -> str:
    """ログイントークンを発行"""
    serializer = URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)
    return serializer.dumps({"id": user_id, "username": username})


def decode_token(secret_key: str, token: str, max_age: int) -> Optional[dict]:
    """トークンを検証してペイロードを返す（無効・期限切れはNone）"""
    serializer = URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)
    try:
        return serializer.loads(token, max_age=max_age)
    except SignatureExpired:
        return None
    except BadSignature:
        return None


def login_required(view):
    """Authorization: Bearer <token> を要求するデコレータ

    検証済みペイロードは g.user に格納される。
    """

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        token = header[7:].strip() if header.startswith("Bearer ") else ""
        if not token:
            return jsonify({"error": "未ログインです"}), 401

        settings = current_app.config["NAV_SETTINGS"]
        payload = decode_token(settings.secret_key, token, settings.token_max_age)
        if payload is None:
            return jsonify({"error": "トークンが無効または期限切れです"}), 401

        g.user = payload
        return view(*args, **kwargs)

    return wrapper
