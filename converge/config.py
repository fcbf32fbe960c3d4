"""TOML-based configuration with environment overrides.

Loads ~/.converge/defaults.toml (global) and converge.toml (project),
merges them, applies SOFTLAYER_* / CONVERGE_* environment variables, and
resolves the result into an immutable Settings.

Example converge.toml::

    [softlayer]
    username = "me"
    endpoint = "https://api.softlayer.com/rest/v3.1"

    [lifecycle]
    timeout = 300
    interval = 10

    [marker]
    label = "TEST:converge"
    notes = "TEST:converge"
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias

from converge.core.exceptions import ConfigurationError
from converge.providers.softlayer.config import DEFAULT_ENDPOINT, SoftLayer
from converge.types import Marker

RawConfig: TypeAlias = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".converge" / "defaults.toml"
PROJECT_CONFIG_NAME = "converge.toml"
DEFAULT_MARKER = "TEST:converge"
DEFAULT_TIMEOUT = 300.0
DEFAULT_INTERVAL = 10.0
DEFAULT_REQUEST_TIMEOUT = 60.0

ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SOFTLAYER_USERNAME": ("softlayer", "username"),
    "SOFTLAYER_API_KEY": ("softlayer", "api_key"),
    "SOFTLAYER_ENDPOINT": ("softlayer", "endpoint"),
    "CONVERGE_TEST_SSH_KEY_PATH": ("ssh", "key_path"),
    "CONVERGE_MARKER": ("marker", "label"),
}


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved configuration for a lifecycle run.

    Args:
        username: SoftLayer username.
        api_key: SoftLayer API key.
        endpoint: REST endpoint root.
        request_timeout: Per-request timeout in seconds.
        timeout: Convergence timeout for each wait in seconds. Default: 5 minutes.
        interval: Polling interval in seconds. Default: 10.
        marker_label: Label written on managed resources and matched by the sweeper.
        marker_notes: Notes written alongside the label.
        ssh_key_path: Public key used by SSH key lifecycle runs.
    """

    username: str | None = None
    api_key: str | None = None
    endpoint: str = DEFAULT_ENDPOINT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    timeout: float = DEFAULT_TIMEOUT
    interval: float = DEFAULT_INTERVAL
    marker_label: str = DEFAULT_MARKER
    marker_notes: str = DEFAULT_MARKER
    ssh_key_path: str | None = None

    def __repr__(self) -> str:
        return (
            f"Settings(username={self.username!r}, endpoint={self.endpoint!r}, "
            f"timeout={self.timeout}, interval={self.interval}, marker={self.marker_label!r})"
        )

    @property
    def marker(self) -> Marker:
        return Marker(label=self.marker_label, notes=self.marker_notes)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.api_key)

    def softlayer(self) -> SoftLayer:
        if not self.username or not self.api_key:
            raise ConfigurationError(
                "SoftLayer credentials missing. Set SOFTLAYER_USERNAME and SOFTLAYER_API_KEY "
                f"or add a [softlayer] table to {PROJECT_CONFIG_NAME}"
            )
        return SoftLayer(
            username=self.username,
            api_key=self.api_key,
            endpoint=self.endpoint,
            request_timeout=self.request_timeout,
        )


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _env_config(env: Mapping[str, str]) -> RawConfig:
    result: RawConfig = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        if value := env.get(var):
            result.setdefault(section, {})[key] = value
    return result


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged = _deep_merge(merged, _env_config(os.environ if env is None else env))
    for section in ("softlayer", "lifecycle", "marker", "ssh"):
        merged.setdefault(section, {})
    return merged


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    config = load_config(project_dir=project_dir, global_path=global_path, env=env)
    softlayer = config["softlayer"]
    lifecycle = config["lifecycle"]
    marker = config["marker"]

    try:
        timeout = float(lifecycle.get("timeout", DEFAULT_TIMEOUT))
        interval = float(lifecycle.get("interval", DEFAULT_INTERVAL))
        request_timeout = float(softlayer.get("request_timeout", DEFAULT_REQUEST_TIMEOUT))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    if interval <= 0 or timeout <= 0:
        raise ConfigurationError(
            f"lifecycle.timeout and lifecycle.interval must be positive (got {timeout}, {interval})"
        )

    label = marker.get("label", DEFAULT_MARKER)
    return Settings(
        username=softlayer.get("username"),
        api_key=softlayer.get("api_key"),
        endpoint=softlayer.get("endpoint", DEFAULT_ENDPOINT),
        request_timeout=request_timeout,
        timeout=timeout,
        interval=interval,
        marker_label=label,
        marker_notes=marker.get("notes", label),
        ssh_key_path=config["ssh"].get("key_path"),
    )
