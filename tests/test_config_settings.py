from __future__ import annotations

import os
from importlib import reload

from fission_upgrade import config as config_module


def _reload_with_env(env: dict):
    for k in ("FISSION_URL", "UPGRADE_STATE_FILE", "LOG_LEVEL", "DRY_RUN", "TARGET_NAMESPACE"):
        os.environ.pop(k, None)
    for k, v in env.items():
        if v is None:
            os.environ.pop(k, None)
        else:
            os.environ[k] = v
    # Bust lru_cache by reloading module
    reload(config_module)
    return config_module.get_settings()


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    s = _reload_with_env({})
    assert s.FISSION_URL == ""
    assert s.UPGRADE_STATE_FILE == "fission-v01-state.json"
    assert s.TARGET_NAMESPACE == "default"
    assert s.DRY_RUN is False
    assert s.ARCHIVE_LITERAL_SIZE_LIMIT == 256 * 1024


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    s = _reload_with_env(
        {
            "FISSION_URL": "  http://controller.fission  ",
            "UPGRADE_STATE_FILE": "/tmp/state.json",
            "LOG_LEVEL": "debug",
            "DRY_RUN": "true",
            "TARGET_NAMESPACE": "fission-function",
        }
    )
    assert s.FISSION_URL == "http://controller.fission"
    assert s.UPGRADE_STATE_FILE == "/tmp/state.json"
    assert s.LOG_LEVEL == "DEBUG"
    assert s.DRY_RUN is True
    assert s.TARGET_NAMESPACE == "fission-function"
    _reload_with_env({})


def test_dotenv_file_is_read(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("FISSION_URL=http://from-dotenv\n", encoding="utf-8")
    s = _reload_with_env({})
    assert s.FISSION_URL == "http://from-dotenv"
