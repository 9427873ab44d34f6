"""設定読み込みテスト"""

import pytest

from navsite.config import Settings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ["NAV_DB_PATH", "NAV_BUSY_TIMEOUT_MS", "NAV_ADMIN_USERNAME",
                 "NAV_ADMIN_PASSWORD", "NAV_SECRET_KEY", "NAV_RESTORE_URL", "PORT"]:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    settings = load_settings(config_path=tmp_path / "missing.yaml")
    assert settings.busy_timeout_ms == 5000
    assert settings.admin_username == "admin"
    assert settings.restore_url is None


def test_yaml_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("nav:\n  db_path: /var/nav/nav.db\n  port: 7860\n  unknown: 1\n")
    settings = load_settings(config_path=path)
    assert settings.db_path == "/var/nav/nav.db"
    assert settings.port == 7860


def test_env_overrides_yaml(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("nav:\n  port: 7860\n")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("NAV_BUSY_TIMEOUT_MS", "2500")
    settings = load_settings(config_path=path)
    assert settings.port == 8080
    assert settings.busy_timeout_ms == 2500


def test_invalid_int_env(tmp_path, monkeypatch):
    monkeypatch.setenv("PORT", "abc")
    with pytest.raises(ValueError):
        load_settings(config_path=tmp_path / "missing.yaml")


def test_settings_is_immutable():
    settings = Settings()
    assert settings._replace(port=1).port == 1
    assert settings.port == 3000


def test_yaml_values_are_cast(tmp_path):
    """YAMLの文字列値も環境変数と同じ型に変換"""
    path = tmp_path / "config.yaml"
    path.write_text('nav:\n  port: "7860"\n  busy_timeout_ms: "1500"\n')
    settings = load_settings(config_path=path)
    assert settings.port == 7860
    assert settings.busy_timeout_ms == 1500


def test_invalid_int_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("nav:\n  port: abc\n")
    with pytest.raises(ValueError):
        load_settings(config_path=path)


def test_missing_secret_key_is_random(tmp_path):
    first = load_settings(config_path=tmp_path / "missing.yaml")
    second = load_settings(config_path=tmp_path / "missing.yaml")
    assert first.secret_key
    assert first.secret_key != second.secret_key


def test_secret_key_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("NAV_SECRET_KEY", "from-env")
    settings = load_settings(config_path=tmp_path / "missing.yaml")
    assert settings.secret_key == "from-env"
