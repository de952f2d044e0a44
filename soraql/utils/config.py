"""Configuration management for soraql: settings file, env overrides and profiles."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
import os
import json
import logging
import tempfile

from soraql.core.errors import ConfigError
from soraql.utils.constants import (
    DEFAULT_OUTPUT_FORMAT, GLOBAL_ENDPOINT, INITIAL_DELAY, JP_ENDPOINT, MAX_POLLS,
    POLL_INTERVAL, RETRY_INTERVAL, SPINNER_INTERVAL
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CONFIG = {
    "output_format": DEFAULT_OUTPUT_FORMAT,
    "initial_delay": INITIAL_DELAY,
    "poll_interval": POLL_INTERVAL,
    "retry_interval": RETRY_INTERVAL,
    "max_polls": MAX_POLLS,
    "spinner_interval": SPINNER_INTERVAL,
    "request_timeout": 60.0,
    "history_file": "~/.soraql_history",
    "profile_dir": "~/.soracom",
    "scratch_dir": None,
    "log_level": "WARNING",
    "log_file": None,
}

# SORAQL_<KEY> environment variables override file settings
ENV_PREFIX = "SORAQL_"


def _coerce(raw: str, like: Any) -> Any:
    if raw.lower() in ('none', ''):
        return None
    if isinstance(like, bool):
        return raw.lower() in ('1', 'true', 'on', 'yes')
    if isinstance(like, int):
        return int(raw)
    if isinstance(like, float):
        return float(raw)
    return raw


class Config:
    """Configuration manager for soraql settings."""

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        self.settings: Dict[str, Any] = DEFAULT_CONFIG.copy()
        self.config_file = config_file or os.path.expanduser("~/.soraql_config.json")
        self._load_config()
        self._apply_env(os.environ if environ is None else environ)

    def _load_config(self) -> None:
        """Load configuration from file if exists."""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, 'r') as f:
                    self.settings.update(json.load(f))
        except Exception as e:
            logger.warning(f"Failed to load config: {e}")

    def _apply_env(self, environ: Dict[str, str]) -> None:
        for key, default in DEFAULT_CONFIG.items():
            raw = environ.get(ENV_PREFIX + key.upper())
            if raw is None:
                continue
            try:
                self.settings[key] = _coerce(raw, default)
            except ValueError:
                logger.warning("Ignoring invalid %s%s=%r", ENV_PREFIX, key.upper(), raw)

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.settings, f, indent=2)
        except Exception as e:
            logger.warning(f"Failed to save config: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self.settings[key] = value

    def history_path(self) -> str:
        return os.path.expanduser(self.settings.get("history_file") or DEFAULT_CONFIG["history_file"])

    def ensure_scratch_dir(self) -> str:
        """Ensure the download scratch directory exists and return its path."""
        scratch = self.settings.get("scratch_dir") or tempfile.gettempdir()
        scratch = os.path.expanduser(scratch)
        os.makedirs(scratch, exist_ok=True)
        return scratch


@dataclass
class Profile:
    """Credentials and endpoint of a named profile (~/.soracom/<name>.json)."""
    name: str
    email: str = ''
    password: str = ''
    auth_key_id: str = ''
    auth_key: str = ''
    coverage_type: str = ''
    endpoint: str = ''
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def host(self) -> str:
        if self.endpoint:
            host = self.endpoint
            for scheme in ('https://', 'http://'):
                if host.startswith(scheme):
                    host = host[len(scheme):]
            return host.rstrip('/')
        return GLOBAL_ENDPOINT if self.coverage_type == 'g' else JP_ENDPOINT

    def auth_payload(self) -> Dict[str, str]:
        if self.email and self.password:
            return {"email": self.email, "password": self.password}
        return {"authKeyId": self.auth_key_id, "authKey": self.auth_key}


def load_profile(name: str, profile_dir: Optional[str] = None) -> Profile:
    directory = os.path.expanduser(profile_dir or config.get("profile_dir") or DEFAULT_CONFIG["profile_dir"])
    path = os.path.join(directory, f"{name}.json")
    logger.debug("Using profile: %s", name)
    logger.debug("Config path: %s", path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"config file '{path}' not found: {e}") from e
    except (OSError, ValueError) as e:
        raise ConfigError(f"failed to parse config file: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("failed to parse config file: expected a JSON object")
    headers = data.get("headers") or {}
    return Profile(
        name=name,
        email=data.get("email") or '',
        password=data.get("password") or '',
        auth_key_id=data.get("authKeyId") or '',
        auth_key=data.get("authKey") or '',
        coverage_type=data.get("coverageType") or '',
        endpoint=data.get("endpoint") or '',
        headers={str(k): str(v) for k, v in headers.items()} if isinstance(headers, dict) else {},
    )


# Global config instance
config = Config()
