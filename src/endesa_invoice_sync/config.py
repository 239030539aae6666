from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, model_validator

from .harvester import HarvestOptions
from .models import DocumentFormats, PortalCredentials, PortalRoutes


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_BASE_URL = "https://www.endesaclientes.com"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only config so most users only need `.env`; YAML stays an optional override.
    """
    return {
        "portal": {
            "base_url": os.getenv("PORTAL_BASE_URL", DEFAULT_BASE_URL),
            "username": os.getenv("PORTAL_USERNAME", ""),
            "password": os.getenv("PORTAL_PASSWORD", ""),
            "download_subdir": os.getenv("PORTAL_DOWNLOAD_SUBDIR", "endesa"),
        },
        "documents": {
            "invoice_name_format": os.getenv("INVOICE_NAME_FORMAT", "DD-MM-YY"),
        },
        "browser": {
            "headless": _env_bool("HEADLESS", default=True),
            "download_timeout_s": float(os.getenv("DOWNLOAD_TIMEOUT_S", "60") or 60),
        },
        "output_dir": os.getenv("OUTPUT_DIR", "invoices"),
        "debug_dir": os.getenv("DEBUG_DIR", "data/debug"),
        "state": {
            "db_path": os.getenv("STATE_DB_PATH", "data/state.db"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/harvest.log"),
        },
    }


class PortalConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    username: str = ""
    password: str = Field(default="", repr=False)
    download_subdir: str = "endesa"
    routes: PortalRoutes = Field(default_factory=PortalRoutes)

    @model_validator(mode="after")
    def _validate(self) -> "PortalConfig":
        base_url = (self.base_url or "").strip().rstrip("/")
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("portal.base_url must be a full URL like 'https://www.endesaclientes.com'")
        self.base_url = base_url
        self.download_subdir = (self.download_subdir or "").strip().strip("/")
        return self

    @property
    def has_credentials(self) -> bool:
        return bool((self.username or "").strip() and self.password)

    def credentials(self) -> PortalCredentials:
        return PortalCredentials(username=self.username.strip(), password=self.password)


class BrowserConfig(BaseModel):
    headless: bool = True
    slow_mo_ms: int = Field(default=0, ge=0)
    wait_timeout_ms: int = Field(default=30_000, gt=0)
    login_settle_ms: int = Field(default=30_000, gt=0)
    download_timeout_s: float = Field(default=60.0, gt=0)
    poll_interval_s: float = Field(default=1.0, gt=0)


class StateConfig(BaseModel):
    db_path: str = "data/state.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/harvest.log"


class AppConfig(BaseModel):
    portal: PortalConfig
    documents: DocumentFormats = Field(default_factory=DocumentFormats)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    output_dir: str = "invoices"
    debug_dir: str = "data/debug"
    state: StateConfig = StateConfig()
    logging: LoggingConfig = LoggingConfig()

    @property
    def download_dir(self) -> Path:
        root = Path(self.output_dir)
        return root / self.portal.download_subdir if self.portal.download_subdir else root

    def harvest_options(self) -> HarvestOptions:
        return HarvestOptions(
            base_url=self.portal.base_url,
            routes=self.portal.routes,
            headless=self.browser.headless,
            slow_mo_ms=self.browser.slow_mo_ms,
            wait_timeout_ms=self.browser.wait_timeout_ms,
            login_settle_ms=self.browser.login_settle_ms,
            download_timeout_s=self.browser.download_timeout_s,
            poll_interval_s=self.browser.poll_interval_s,
            debug_dir=self.debug_dir,
        )


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
