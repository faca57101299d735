# Overview: Console-side configuration; gateway URL/key resolution and the persisted settings file.

"""
Client Configuration

Resolution order for the gateway connection:
1. PRESSDESK_GATEWAY_URL and PRESSDESK_GATEWAY_KEY environment variables
2. the "gateway" section of the local config file

Both values must be present before the console talks to anything. The
config file (default ~/.pressdesk/config.json, override with
PRESSDESK_CONFIG_PATH) also holds the AppSettings singleton.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .entities import AppSettings


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".pressdesk" / "config.json"


class ConfigError(Exception):
    """Raised when the console is not configured to reach a gateway."""
    pass


def config_path() -> Path:
    override = os.environ.get("PRESSDESK_CONFIG_PATH")
    return Path(override) if override else DEFAULT_CONFIG_PATH


def _read(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Config file {path} is unreadable: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


@dataclass(frozen=True)
class ClientConfig:
    gateway_url: str
    gateway_key: str

    @classmethod
    def load(cls, path: Path | None = None) -> "ClientConfig":
        path = path or config_path()
        stored = _read(path).get("gateway") or {}
        url = os.environ.get("PRESSDESK_GATEWAY_URL") or stored.get("url")
        key = os.environ.get("PRESSDESK_GATEWAY_KEY") or stored.get("key")
        if not url or not key:
            raise ConfigError(
                "Gateway is not configured. Set PRESSDESK_GATEWAY_URL and PRESSDESK_GATEWAY_KEY "
                "or save them with save_gateway_config()."
            )
        return cls(gateway_url=url.rstrip("/"), gateway_key=key)


def save_gateway_config(url: str, key: str, path: Path | None = None) -> ClientConfig:
    url = (url or "").strip()
    key = (key or "").strip()
    if not url or not key:
        raise ConfigError("Both gateway URL and key are required")
    path = path or config_path()
    data = _read(path)
    data["gateway"] = {"url": url, "key": key}
    _write(path, data)
    logger.info("Saved gateway configuration to %s", path)
    return ClientConfig(gateway_url=url.rstrip("/"), gateway_key=key)


def clear_gateway_config(path: Path | None = None) -> None:
    path = path or config_path()
    data = _read(path)
    if data.pop("gateway", None) is not None:
        _write(path, data)
        logger.info("Cleared gateway configuration in %s", path)


def load_settings(path: Path | None = None) -> AppSettings:
    return AppSettings.from_dict(_read(path or config_path()).get("settings"))


def save_settings(settings: AppSettings, path: Path | None = None) -> None:
    path = path or config_path()
    data = _read(path)
    data["settings"] = settings.to_dict()
    _write(path, data)
