"""Application settings and the persisted server config record.

Settings (timeouts, ports, vendor endpoint) come from environment variables
or an optional YAML file.  The token and the advertised MCP address live in a
small JSON record managed by :class:`ConfigStore`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings

from mcdcoupon.errors import ConfigError
from mcdcoupon.models import ServerConfigRecord

logger = logging.getLogger(__name__)

APP_DIR_NAME = "mcd-coupon"
CONFIG_FILE_NAME = "config.json"
CWD_CONFIG_FILE_NAME = "mcd-coupon-config.json"
TOKEN_SCHEME = "Bearer "


class Settings(BaseSettings):
    """Central configuration for mcd-coupon.

    Values are resolved in order: constructor kwargs > env vars > YAML file > defaults.
    Environment variables are prefixed with ``MCDCOUPON_`` (e.g. ``MCDCOUPON_MCP_PORT``).
    """

    # -- Vendor ---------------------------------------------------------------
    upstream_url: str = "https://mcp.mcd.cn/mcp-servers/mcd-mcp"
    upstream_timeout_s: float = 30.0
    vendor_available_tool: str = "available-coupons"
    vendor_claim_tool: str = "auto-bind-coupons"
    vendor_my_coupons_tool: str = "my-coupons"
    vendor_time_tool: str = "now-time-info"

    # -- Listeners ------------------------------------------------------------
    html_host: str = "127.0.0.1"
    html_port: int = 8080
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8081
    port_scan_end: int = 9000
    sse_heartbeat_s: float = 15.0

    # -- Misc -----------------------------------------------------------------
    config_path: str = ""
    open_browser: bool = True
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "MCDCOUPON_",
    }


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """Load settings, optionally merging values from a YAML file.

    Parameters
    ----------
    config_path:
        Path to a YAML config file.  If *None*, only env vars and defaults
        are used.
    """
    overrides: dict = {}
    if config_path is not None:
        p = Path(config_path)
        if p.exists():
            with p.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh)
            if isinstance(raw, dict):
                valid_keys = set(Settings.model_fields.keys())
                overrides = {k: v for k, v in raw.items() if k in valid_keys and v is not None}
    return Settings(**overrides)


# ====================================================================
# Token helpers
# ====================================================================

def normalize_token(raw: str) -> str:
    """Strip whitespace and make sure the bearer scheme prefix is present."""
    token = (raw or "").strip()
    if not token:
        return ""
    if token.startswith(TOKEN_SCHEME):
        return token
    return f"{TOKEN_SCHEME}{token}"


def mask_token(token: str) -> str:
    """Return a log-safe rendition of *token*."""
    if not token:
        return "<empty>"
    secret = token[len(TOKEN_SCHEME):] if token.startswith(TOKEN_SCHEME) else token
    if len(secret) <= 8:
        return "****"
    prefix = TOKEN_SCHEME if token.startswith(TOKEN_SCHEME) else ""
    return f"{prefix}{secret[:4]}…{secret[-4:]}"


# ====================================================================
# Config record persistence
# ====================================================================

def default_config_path() -> Path:
    """Per-OS location of the config record."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        root = Path(xdg) if xdg else Path.home() / ".config"
    return root / APP_DIR_NAME / CONFIG_FILE_NAME


def _read_record(path: Path) -> ServerConfigRecord:
    with path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, dict):
        raise ValueError(f"expected a JSON object in {path}")
    return ServerConfigRecord.model_validate(raw)


def _write_record(path: Path, record: ServerConfigRecord) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = record.model_dump(mode="json", exclude_none=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


class ConfigStore:
    """Owner of the :class:`ServerConfigRecord`.

    Readers get the current immutable snapshot without locking.  Writers
    serialize on a lock, persist, and then swap the snapshot, so a request
    in flight never observes a half-applied change.
    """

    def __init__(
        self,
        path: Path,
        record: Optional[ServerConfigRecord] = None,
        *,
        fallback_path: Optional[Path] = None,
    ) -> None:
        self._path = path
        self._fallback_path = fallback_path or Path.cwd() / CWD_CONFIG_FILE_NAME
        self._record = record or ServerConfigRecord()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Optional[Path] = None, *, fallback_path: Optional[Path] = None) -> "ConfigStore":
        """Load the record, preferring the copy in the working directory."""
        primary = path or default_config_path()
        fallback = fallback_path or Path.cwd() / CWD_CONFIG_FILE_NAME
        for candidate in (fallback, primary):
            if not candidate.exists():
                continue
            try:
                record = _read_record(candidate)
            except (OSError, ValueError, ValidationError) as exc:
                logger.warning("Ignoring unreadable config %s: %s", candidate, exc)
                continue
            logger.info("Loaded config from %s", candidate)
            return cls(primary, record, fallback_path=fallback)
        return cls(primary, fallback_path=fallback)

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> ServerConfigRecord:
        return self._record

    def has_valid_token(self) -> bool:
        return bool(self._record.token.strip())

    def set(self, **changes: Any) -> ServerConfigRecord:
        """Apply *changes*, persist, and publish the new snapshot."""
        with self._lock:
            data = self._record.model_dump()
            data.update(changes)
            record = ServerConfigRecord.model_validate(data)
            self._save(record)
            self._record = record
        return record

    def set_token(self, raw: str) -> ServerConfigRecord:
        return self.set(token=normalize_token(raw))

    def reset_token(self) -> ServerConfigRecord:
        return self.set(token="")

    def record_bound_port(self, port: int, url: str) -> ServerConfigRecord:
        return self.set(mcp_server_port=port, mcp_server_url=url)

    def _save(self, record: ServerConfigRecord) -> None:
        try:
            _write_record(self._path, record)
            return
        except OSError as exc:
            logger.warning("Cannot write %s (%s); trying %s", self._path, exc, self._fallback_path)
        try:
            _write_record(self._fallback_path, record)
        except OSError as exc:
            raise ConfigError(f"cannot save config to any location: {exc}") from exc
        self._path = self._fallback_path
