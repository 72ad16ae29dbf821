import os
from typing import Union

from .types import ClientSettings

DEFAULT_PREFIX = "BRIGADE_"

# env suffix -> (ClientSettings field, converter)
_FIELDS = {
    "API_BASE_URL": ("base_url", str),
    "REFRESH_PATH": ("refresh_path", str),
    "TIMEOUT": ("timeout", float),
    "RETRIES": ("retries", int),
    "RETRY_DELAY": ("retry_delay", float),
    "MAX_JITTER": ("max_jitter", float),
    "MAX_DELAY": ("max_delay", float),
    "REFRESH_THRESHOLD": ("refresh_threshold", float),
    "EXPIRY_SKEW": ("expiry_skew", float),
}


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :]
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        pass
    return values


def load_settings_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: Union[str, None] = None,
    **overrides,
) -> ClientSettings:
    """Build ClientSettings from `<prefix>API_BASE_URL`, `<prefix>TIMEOUT`, etc.

    - If 'env_path' is provided, variables from the .env file augment the
        lookup without mutating the process environment. Values in the actual
        environment take precedence over the file.
    - Keyword overrides (ClientSettings field names) win over both.

    Raises:
        ValueError: if no base URL is configured or a numeric value is malformed
    """
    file_env = _parse_env_file(env_path) if env_path else {}
    env_map: dict[str, str] = {**file_env, **os.environ}

    values = {}
    for suffix, (field_name, convert) in _FIELDS.items():
        var = f"{prefix}{suffix}"
        raw = env_map.get(var)
        if raw is None or raw == "":
            continue
        try:
            values[field_name] = convert(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from e
    values.update(overrides)

    if not values.get("base_url"):
        raise ValueError(f"{prefix}API_BASE_URL is not set")
    return ClientSettings(**values)
