from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from devnotify.lib.utils.coerce import to_bool


class ConfigError(ValueError):
    """Raised for configuration that cannot be used to start the service."""


def _to_bool(value: Any, *, name: str) -> bool:
    try:
        return to_bool(value, name=name)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass
class AppConfig:
    debug: bool = False
    api_port: int = 8080
    slack_webhook_url: str = ""
    mail_smtp_host: str = ""
    mail_smtp_port: str = ""
    mail_from: str = ""
    mail_password: str = ""
    subscription_files_dir: str = ""
    subscriptions: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AppConfig":
        data = dict(data or {})
        unknown = set(data) - {entry.name for entry in fields(cls)}
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        subscriptions = data.get("subscriptions") or []
        if not isinstance(subscriptions, list) or not all(isinstance(entry, dict) for entry in subscriptions):
            raise ConfigError("'subscriptions' must be a list of mappings")

        raw_port = data.get("api_port", 8080)
        try:
            api_port = int(raw_port)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid api_port: {raw_port!r}") from exc

        return cls(
            debug=_to_bool(data.get("debug"), name="debug"),
            api_port=api_port,
            slack_webhook_url=_to_str(data.get("slack_webhook_url")),
            mail_smtp_host=_to_str(data.get("mail_smtp_host")),
            mail_smtp_port=_to_str(data.get("mail_smtp_port")),
            mail_from=_to_str(data.get("mail_from")),
            mail_password=_to_str(data.get("mail_password")),
            subscription_files_dir=_to_str(data.get("subscription_files_dir")),
            subscriptions=[dict(entry) for entry in subscriptions],
        )


def apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """Scalar keys may be overridden by an upper-cased environment variable."""
    merged = dict(data)
    for entry in fields(AppConfig):
        if entry.name == "subscriptions":
            continue
        env_value = environ.get(entry.name.upper())
        if env_value is not None:
            merged[entry.name] = env_value
    return merged


def app_config(
    file_path: Optional[Union[str, Path]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    environ = os.environ if environ is None else environ
    config_dict: Dict[str, Any] = {}
    if file_path is not None:
        try:
            with open(file_path, "r", encoding="utf-8") as file:
                loaded = yaml.safe_load(file)
        except OSError as exc:
            raise ConfigError(f"Unable to read config file {file_path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Malformed config file {file_path}: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Config file {file_path} must contain a mapping")
        config_dict = loaded or {}
    return AppConfig.from_dict(apply_env_overrides(config_dict, environ))


load_config = app_config
