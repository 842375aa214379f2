from __future__ import annotations

import importlib.util
import stat
from pathlib import Path

import pytest

SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "generate_jwt_secret.py"


@pytest.fixture(scope="module")
def secret_script():
    spec = importlib.util.spec_from_file_location("generate_jwt_secret", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


def test_generate_secret_enforces_minimum_length(secret_script):
    assert len(secret_script.generate_secret(32)) >= 43
    with pytest.raises(ValueError):
        secret_script.generate_secret(16)


def test_write_secret_replaces_existing_entry(secret_script, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("DATABASE_URL=sqlite://\nJWT_SECRET_KEY=old\n", encoding="utf-8")

    secret_script.write_secret(env_file, "fresh")

    assert env_file.read_text(encoding="utf-8").splitlines() == [
        "DATABASE_URL=sqlite://",
        "JWT_SECRET_KEY=fresh",
    ]
    assert stat.S_IMODE(env_file.stat().st_mode) == 0o600


def test_main_rejects_short_keys(secret_script, capsys):
    assert secret_script.main(["--bytes", "8"]) == 2
    assert "at least 32 bytes" in capsys.readouterr().err
