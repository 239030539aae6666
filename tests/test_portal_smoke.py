from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

import pytest
from dotenv import dotenv_values

ROOT = Path(__file__).resolve().parents[1]


def _get_env_file() -> Optional[Path]:
    env_path = os.getenv("PORTAL_ENV_FILE")
    if env_path:
        return Path(env_path)

    default = ROOT / "portal.env"
    if default.exists():
        return default

    return None


def _skip_or_fail(reason: str) -> None:
    # Live smoke tests need real credentials and must not fail local unit test runs by default.
    # Set REQUIRE_PORTAL_TESTS=1 to turn skips into failures (dedicated integration runs).
    if os.getenv("REQUIRE_PORTAL_TESTS") == "1":
        pytest.fail(reason)
    pytest.skip(reason)


@pytest.mark.portal
def test_harvest_without_touching_watermark(tmp_path: Path) -> None:
    env_file = _get_env_file()
    env = os.environ.copy()
    if env_file is not None:
        if not env_file.exists():
            _skip_or_fail(f"Env file not found: {env_file}")
        for key, value in dotenv_values(env_file).items():
            if value is not None and key not in env:
                env[key] = value

    if not env.get("PORTAL_USERNAME") or not env.get("PORTAL_PASSWORD"):
        _skip_or_fail("Missing PORTAL_USERNAME/PORTAL_PASSWORD.")

    env["STATE_DB_PATH"] = str(tmp_path / "state.db")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT / "src"), env.get("PYTHONPATH", "")]))
    since = os.getenv("PORTAL_SMOKE_SINCE", "2000-01-01")

    cmd = [sys.executable, "-m", "endesa_invoice_sync"]
    if env_file:
        cmd += ["--env-file", str(env_file)]
    cmd += ["harvest", "--since", since, "--output-dir", str(tmp_path / "out"), "--no-save-watermark"]

    timeout = int(os.getenv("PORTAL_SMOKE_TIMEOUT", "600"))
    proc = subprocess.run(cmd, cwd=ROOT, env=env, timeout=timeout)
    # 0 = everything downloaded (or nothing new), 1 = some invoices failed; login/init failures are 2/3.
    assert proc.returncode in (0, 1)
