import os
import stat

import json5

from ghappauth.core.errors import ConfigError, ConfigNotFoundError
from ghappauth.core.models import (
    Configuration,
    CredentialEntry,
    GitHubApp,
    PersonalAccessToken,
)
from ghappauth.core.validation import validate

CONFIG_ENV_VAR = "GH_APP_AUTH_CONFIG"
DEFAULT_CONFIG_PATH = "~/.config/gh/extensions/gh-app-auth/config.json5"


def load_config(path: str) -> Configuration:
    """Load and validate config from a JSON5 file.

    Validates:
    - File exists
    - File permissions are 600 (owner read/write only)
    - JSON5 is valid
    - Required structure is present and every entry is well-formed
    """
    return parse_config(read_config_data(path))


def read_config_data(path: str) -> dict:
    """Read a JSON5 config file without building entries from it."""
    if not os.path.isfile(path):
        raise ConfigNotFoundError(f"Config file not found: {path}")

    file_stat = os.stat(path)
    mode = stat.S_IMODE(file_stat.st_mode)
    group_or_other = (
        stat.S_IRGRP | stat.S_IWGRP | stat.S_IXGRP
        | stat.S_IROTH | stat.S_IWOTH | stat.S_IXOTH
    )
    if mode & group_or_other:
        raise ConfigError(
            f"Config file {path} has too-open permissions ({oct(mode)}). "
            f"Run: chmod 600 {path}"
        )

    with open(path) as f:
        try:
            data = json5.load(f)
        except ValueError as e:
            raise ConfigError(f"Invalid JSON5 in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object")
    return data


def write_config_data(path: str, data: dict) -> Configuration:
    """Validate data and write it to path with mode 600.

    Nothing is written if the data does not parse into a valid
    configuration. Parent directories are created owner-only.
    """
    config = parse_config(data)

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, mode=0o700, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(json5.dumps(data, indent=2, quote_keys=True, trailing_commas=False))
        f.write("\n")
    # O_CREAT's mode does not apply to a file that already existed
    os.chmod(path, 0o600)
    return config


def parse_config(data) -> Configuration:
    """Build a validated Configuration from decoded JSON5 data."""
    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object")

    version = data.get("version")
    if version is None:
        version = ""
    if not isinstance(version, str):
        raise ConfigError("'version' must be a string")

    entries = []
    for i, raw in enumerate(_section(data, "github_apps")):
        entries.append(_parse_github_app(f"github_apps[{i}]", raw))
    for i, raw in enumerate(_section(data, "pats")):
        entries.append(_parse_pat(f"pats[{i}]", raw))

    config = Configuration(version=version, entries=tuple(entries))
    validate(config)
    return config


def _section(data: dict, key: str) -> list:
    section = data.get(key, [])
    if section is None:
        return []
    if not isinstance(section, list):
        raise ConfigError(f"'{key}' must be an array")
    return section


def _parse_github_app(where: str, raw) -> CredentialEntry:
    _require_object(where, raw)
    return CredentialEntry(
        name=_get(where, raw, "name", str, ""),
        patterns=_get_patterns(where, raw),
        payload=GitHubApp(
            app_id=_get(where, raw, "app_id", int, 0),
            installation_id=_get(where, raw, "installation_id", int, 0),
            private_key_path=_get(where, raw, "private_key_path", str, ""),
            private_key_source=_get(where, raw, "private_key_source", str, ""),
        ),
        priority=_get(where, raw, "priority", int, 0),
    )


def _parse_pat(where: str, raw) -> CredentialEntry:
    _require_object(where, raw)
    return CredentialEntry(
        name=_get(where, raw, "name", str, ""),
        patterns=_get_patterns(where, raw),
        payload=PersonalAccessToken(
            token=_get(where, raw, "token", str, ""),
            token_env=_get(where, raw, "token_env", str, ""),
        ),
        priority=_get(where, raw, "priority", int, 0),
    )


def _require_object(where: str, raw) -> None:
    if not isinstance(raw, dict):
        raise ConfigError(f"{where} must be an object")


def _get(where: str, raw: dict, key: str, kind: type, default):
    value = raw.get(key)
    if value is None:
        return default
    # bool is an int subclass; true/false is never a valid id or priority
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ConfigError(f"{where} '{key}' must be {_type_name(kind)}")
    return value


def _get_patterns(where: str, raw: dict) -> tuple[str, ...]:
    patterns = raw.get("patterns")
    if patterns is None:
        return ()
    if not isinstance(patterns, list):
        raise ConfigError(f"{where} 'patterns' must be an array")
    for j, pattern in enumerate(patterns):
        if not isinstance(pattern, str):
            raise ConfigError(f"{where} 'patterns'[{j}] must be a string")
    return tuple(patterns)


def _type_name(kind: type) -> str:
    return "an integer" if kind is int else "a string"
