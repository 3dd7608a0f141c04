# tests/test_config.py
import json
import logging

from katip.config import DEFAULT_DB_URL, load_settings
from katip.logging_config import JsonFormatter, get_logging_config


def test_defaults():
    s = load_settings({})
    assert s.service_database_url == DEFAULT_DB_URL
    assert s.jwt_secret is None
    assert s.cors_origins == ("*",)
    assert s.uyumsoft_timeout == 30.0


def test_env_overrides():
    s = load_settings({
        "KATIP_SERVICE_DATABASE_URL": "postgresql://svc@db/katip",
        "KATIP_JWT_SECRET": "s3cret",
        "KATIP_CORS_ORIGINS": "https://app.katip.test, http://localhost:3000",
        "UYUMSOFT_TIMEOUT": "5",
        "KATIP_PORT": "9000",
    })
    assert s.service_database_url == "postgresql://svc@db/katip"
    assert s.jwt_secret == "s3cret"
    assert s.cors_origins == ("https://app.katip.test", "http://localhost:3000")
    assert s.uyumsoft_timeout == 5.0
    assert s.port == 9000


def test_password_not_in_repr():
    assert "hunter2" not in repr(load_settings({"UYUMSOFT_PASSWORD": "hunter2"}))


def test_json_formatter_includes_extras():
    record = logging.LogRecord("katip.registration", logging.WARNING, __file__, 1, "seed failed for %s", ("c1",), None)
    record.company_id = "c1"
    entry = json.loads(JsonFormatter().format(record))
    assert entry["level"] == "WARNING"
    assert entry["message"] == "seed failed for c1"
    assert entry["extra"] == {"company_id": "c1"}


def test_logging_config_format_switch():
    assert "()" in get_logging_config("info", "json")["formatters"]["default"]
    assert get_logging_config("debug", "console")["root"]["level"] == "DEBUG"
