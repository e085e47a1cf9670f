from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, cast

import yaml
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("datalens_bridge.config")

DEFAULT_BASE_URL = "https://api.datalens.tech"
DEFAULT_API_VERSION = "0"
DEFAULT_TIMEOUT_SECONDS = 30

# First non-empty wins.
TOKEN_ENV_VARS = ("DATALENS_IAM_TOKEN", "YC_IAM_TOKEN", "DATALENS_SUBJECT_TOKEN")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    org_id: Optional[str] = None
    subject_token: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    log_level: str = "INFO"
    log_format: str = "text"

    def __repr__(self) -> str:
        token = "<set>" if self.subject_token else None
        return (
            f"Settings(base_url={self.base_url!r}, api_version={self.api_version!r}, "
            f"org_id={self.org_id!r}, subject_token={token!r}, timeout_seconds={self.timeout_seconds})"
        )

    __str__ = __repr__


def _non_empty(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _load_yaml_section(config_path: Optional[Path]) -> dict[str, Any]:
    if config_path is None:
        config_path = Path.cwd() / "config.yaml"
        if not config_path.exists():
            return {}
    elif not config_path.exists():
        logger.warning("config file %s not found; using environment only", config_path)
        return {}
    with config_path.open("r", encoding="utf-8") as f:
        loaded: Any = yaml.safe_load(f) or {}
    data = cast(dict[str, Any], loaded) if isinstance(loaded, dict) else {}
    section = data.get("datalens", {})
    return cast(dict[str, Any], section) if isinstance(section, dict) else {}


def parse_timeout_seconds(raw: Any) -> int:
    """Positive integer seconds; anything else falls back to the default with a warning."""
    text = _non_empty(raw)
    if text is None:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = int(text)
    except ValueError as e:
        logger.warning(
            "Failed to parse DATALENS_TIMEOUT_SECONDS=%r: %s; using default %d",
            text,
            e,
            DEFAULT_TIMEOUT_SECONDS,
        )
        return DEFAULT_TIMEOUT_SECONDS
    if value <= 0:
        logger.warning(
            "DATALENS_TIMEOUT_SECONDS must be a positive integer, using default %d",
            DEFAULT_TIMEOUT_SECONDS,
        )
        return DEFAULT_TIMEOUT_SECONDS
    return value


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
) -> Settings:
    env = os.environ if env is None else env
    if config_path is None and _non_empty(env.get("DATALENS_CONFIG")):
        config_path = Path(str(env["DATALENS_CONFIG"]).strip())
    file_cfg = _load_yaml_section(config_path)

    def pick(env_name: str, key: str) -> Optional[str]:
        return _non_empty(env.get(env_name)) or _non_empty(file_cfg.get(key))

    token: Optional[str] = None
    for name in TOKEN_ENV_VARS:
        token = _non_empty(env.get(name))
        if token:
            break

    timeout_raw = _non_empty(env.get("DATALENS_TIMEOUT_SECONDS"))
    if timeout_raw is None:
        timeout_raw = _non_empty(file_cfg.get("timeout_seconds"))

    log_format = (pick("DATALENS_LOG_FORMAT", "log_format") or "text").lower()
    if log_format not in ("text", "json"):
        logger.warning("unknown log format %r; using text", log_format)
        log_format = "text"

    return Settings(
        base_url=pick("DATALENS_BASE_URL", "base_url") or DEFAULT_BASE_URL,
        api_version=pick("DATALENS_API_VERSION", "api_version") or DEFAULT_API_VERSION,
        org_id=pick("DATALENS_ORG_ID", "org_id"),
        subject_token=token,
        timeout_seconds=parse_timeout_seconds(timeout_raw),
        log_level=(pick("DATALENS_LOG_LEVEL", "log_level") or "INFO").upper(),
        log_format=log_format,
    )


def warn_if_incomplete(settings: Settings) -> None:
    if not settings.org_id:
        logger.warning("DATALENS_ORG_ID is not set; tool calls will fail until it is configured")
    if not settings.subject_token:
        logger.warning("YC_IAM_TOKEN / DATALENS_IAM_TOKEN is not set; tool calls will fail until it is configured")
