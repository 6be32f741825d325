"""Bridge configuration loading and validation.

Reads ``sigbridge.toml``, resolves ``${VAR}`` environment references, and
returns a validated :class:`BridgeConfig` dataclass.

Signal settings live under ``[signal]``. Named accounts under
``[signal.accounts.<id>]`` inherit every ``[signal]`` key they do not
override; without named accounts the base section is the ``default`` account.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sigbridge.access import DmPolicy, GroupPolicy, normalize_allow_list
from sigbridge.reactions import DEFAULT_REACTION_MODE, ReactionNotificationMode
from sigbridge.routing import DEFAULT_ACCOUNT_ID

CONFIG_FILENAME = "sigbridge.toml"
CONFIG_PATH_ENV = "SIGBRIDGE_CONFIG"

DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 8080
DEFAULT_MEDIA_MAX_MB = 8
DEFAULT_HEALTH_PORT = 40085

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when bridge configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_file: str | None = None  # JSON lines, in addition to the console


@dataclass
class HealthConfig:
    """Health endpoint configuration from the [health] section."""

    enabled: bool = True
    port: int = DEFAULT_HEALTH_PORT


@dataclass
class SignalAccountConfig:
    """Effective settings for one Signal account."""

    account: str | None = None
    name: str | None = None
    http_url: str | None = None
    http_host: str = DEFAULT_HTTP_HOST
    http_port: int = DEFAULT_HTTP_PORT
    dm_policy: DmPolicy = DmPolicy.PAIRING
    group_policy: GroupPolicy = GroupPolicy.OPEN
    allow_from: list[str] = field(default_factory=list)
    group_allow_from: list[str] | None = None
    reaction_notifications: ReactionNotificationMode = DEFAULT_REACTION_MODE
    reaction_allowlist: list[str] = field(default_factory=list)
    media_max_mb: float = DEFAULT_MEDIA_MAX_MB
    ignore_attachments: bool = False

    @property
    def base_url(self) -> str:
        if self.http_url and self.http_url.strip():
            return self.http_url.strip().rstrip("/")
        return f"http://{self.http_host}:{self.http_port}"

    @property
    def media_max_bytes(self) -> int:
        return int(self.media_max_mb * 1024 * 1024)

    @property
    def effective_group_allow_from(self) -> list[str]:
        """Group allow-list, falling back to ``allow_from`` when unset."""
        if self.group_allow_from is not None:
            return list(self.group_allow_from)
        return list(self.allow_from)


@dataclass
class BridgeConfig:
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    signal_accounts: dict[str, SignalAccountConfig] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedSignalAccount:
    account_id: str
    base_url: str
    config: SignalAccountConfig


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values are returned
    unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _parse_enum(enum_cls: type, raw: Any, key: str) -> Any:
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Invalid {key}: {raw!r}. Expected one of: {allowed}") from None


def _parse_list(raw: Any, key: str) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{key} must be a list")
    return normalize_allow_list(raw)


def _parse_signal_account(section: dict[str, Any], label: str) -> SignalAccountConfig:
    cfg = SignalAccountConfig()

    account = section.get("account")
    cfg.account = str(account).strip() if account is not None and str(account).strip() else None
    name = section.get("name")
    cfg.name = str(name) if name is not None else None

    http_url = section.get("http_url")
    cfg.http_url = str(http_url) if http_url else None
    cfg.http_host = str(section.get("http_host", DEFAULT_HTTP_HOST))
    try:
        cfg.http_port = int(section.get("http_port", DEFAULT_HTTP_PORT))
        cfg.media_max_mb = float(section.get("media_max_mb", DEFAULT_MEDIA_MAX_MB))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid numeric value in {label}: {exc}") from exc
    if cfg.media_max_mb <= 0:
        raise ConfigError(f"{label}.media_max_mb must be positive")

    if "dm_policy" in section:
        cfg.dm_policy = _parse_enum(DmPolicy, section["dm_policy"], f"{label}.dm_policy")
    if "group_policy" in section:
        cfg.group_policy = _parse_enum(
            GroupPolicy, section["group_policy"], f"{label}.group_policy"
        )
    if "reaction_notifications" in section:
        cfg.reaction_notifications = _parse_enum(
            ReactionNotificationMode,
            section["reaction_notifications"],
            f"{label}.reaction_notifications",
        )

    cfg.allow_from = _parse_list(section.get("allow_from"), f"{label}.allow_from")
    if section.get("group_allow_from") is not None:
        cfg.group_allow_from = _parse_list(
            section["group_allow_from"], f"{label}.group_allow_from"
        )
    cfg.reaction_allowlist = _parse_list(
        section.get("reaction_allowlist"), f"{label}.reaction_allowlist"
    )
    cfg.ignore_attachments = bool(section.get("ignore_attachments", False))
    return cfg


def _parse_signal_section(raw: Any) -> dict[str, SignalAccountConfig]:
    if raw is None:
        return {DEFAULT_ACCOUNT_ID: SignalAccountConfig()}
    if not isinstance(raw, dict):
        raise ConfigError("[signal] must be a table")

    base = {k: v for k, v in raw.items() if k != "accounts"}
    accounts_raw = raw.get("accounts") or {}
    if not isinstance(accounts_raw, dict):
        raise ConfigError("[signal.accounts] must be a table")

    if not accounts_raw:
        return {DEFAULT_ACCOUNT_ID: _parse_signal_account(base, "signal")}

    accounts: dict[str, SignalAccountConfig] = {}
    for account_id, override in accounts_raw.items():
        if not isinstance(override, dict):
            raise ConfigError(f"[signal.accounts.{account_id}] must be a table")
        merged = {**base, **override}
        accounts[str(account_id)] = _parse_signal_account(merged, f"signal.accounts.{account_id}")
    return accounts


def parse_config(data: dict[str, Any]) -> BridgeConfig:
    """Validate an already-parsed TOML document."""
    data = resolve_env_vars(data)

    logging_section = data.get("logging", {})
    log_format = str(logging_section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(f"Invalid logging.format: {log_format!r}. Expected 'text' or 'json'")
    log_file = logging_section.get("log_file")
    logging_cfg = LoggingConfig(
        level=str(logging_section.get("level", "INFO")).upper(),
        format=log_format,
        log_file=str(log_file) if log_file else None,
    )

    health_section = data.get("health", {})
    try:
        health_port = int(health_section.get("port", DEFAULT_HEALTH_PORT))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid health.port: {exc}") from exc
    health_cfg = HealthConfig(
        enabled=bool(health_section.get("enabled", True)),
        port=health_port,
    )

    return BridgeConfig(
        logging=logging_cfg,
        health=health_cfg,
        signal_accounts=_parse_signal_section(data.get("signal")),
    )


def load_config(path: Path | None = None) -> BridgeConfig:
    """Load and validate the bridge config file.

    *path* defaults to ``$SIGBRIDGE_CONFIG`` or ``./sigbridge.toml``.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or fails validation.
    """
    if path is None:
        path = Path(os.environ.get(CONFIG_PATH_ENV, CONFIG_FILENAME))

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    return parse_config(data)


def list_signal_account_ids(config: BridgeConfig) -> list[str]:
    return sorted(config.signal_accounts) or [DEFAULT_ACCOUNT_ID]


def resolve_signal_account(
    config: BridgeConfig, account_id: str | None = None
) -> ResolvedSignalAccount:
    """Return the effective settings for *account_id* (``default`` when omitted).

    With a single configured account and no explicit id, that account is used.
    """
    accounts = config.signal_accounts or {DEFAULT_ACCOUNT_ID: SignalAccountConfig()}
    if account_id is None:
        if DEFAULT_ACCOUNT_ID in accounts:
            account_id = DEFAULT_ACCOUNT_ID
        elif len(accounts) == 1:
            account_id = next(iter(accounts))
        else:
            raise ConfigError(
                "Multiple Signal accounts configured; pass an account id "
                f"(one of: {', '.join(sorted(accounts))})"
            )
    account_cfg = accounts.get(account_id)
    if account_cfg is None:
        raise ConfigError(f"Unknown Signal account: {account_id!r}")
    return ResolvedSignalAccount(
        account_id=account_id,
        base_url=account_cfg.base_url,
        config=account_cfg,
    )
