import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

CONFIG_PATH = "config.json"

DEFAULT_API_HOST = "api.instagram.com"
DEFAULT_KEYRING_SERVICE = "instagram_api"

# Default configuration values
DEFAULT_CONFIG = {
    # OAuth implicit grant. Both values come from the Instagram developer
    # dashboard and must be set before login() can present anything.
    "instagram_client_id": "",
    "instagram_redirect_uri": "",
    "instagram_scopes": ["basic"],

    "instagram_api_host": DEFAULT_API_HOST,
    "instagram_keyring_service": DEFAULT_KEYRING_SERVICE,

    # Seconds. Neither the API nor the login page enforce a deadline.
    "instagram_request_timeout": 30.0,
    "instagram_login_timeout": 300.0,
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "instagram_client_id": {"type": str, "required": False},
    "instagram_redirect_uri": {"type": str, "required": False},
    "instagram_scopes": {
        "type": list,
        "required": False,
        "element_type": str,
        "element_choices": [
            "basic",
            "public_content",
            "follower_list",
            "comments",
            "relationships",
            "likes",
        ],
    },
    "instagram_api_host": {"type": str, "required": True},
    "instagram_keyring_service": {"type": str, "required": True},
    "instagram_request_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "instagram_login_timeout": {"type": (int, float), "required": False, "min": 10, "max": 3600},
}


@dataclass(frozen=True)
class ClientConfig:
    """Registered application identity used to build the authorize URL.

    A missing client id or redirect URI is a valid (unconfigured) state;
    ``is_configured`` reports it instead of failing at construction.
    """

    client_id: Optional[str] = None
    redirect_uri: Optional[str] = None
    api_host: str = DEFAULT_API_HOST

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id) and bool(self.redirect_uri)

    @property
    def base_url(self) -> str:
        return f"https://{self.api_host}/v1"

    @property
    def authorize_url(self) -> str:
        return f"https://{self.api_host}/oauth/authorize"

    @staticmethod
    def from_config(config: Optional[Dict[str, Any]]) -> "ClientConfig":
        config = config or {}
        client_id = str(config.get("instagram_client_id") or "").strip()
        redirect_uri = str(config.get("instagram_redirect_uri") or "").strip()
        api_host = str(config.get("instagram_api_host") or "").strip() or DEFAULT_API_HOST
        return ClientConfig(
            client_id=client_id or None,
            redirect_uri=redirect_uri or None,
            api_host=api_host,
        )


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save configuration to file."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}") from e


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        expected_type = rules.get("type")
        # bool is an int subclass; never accept it for numeric fields.
        if expected_type and (not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

            if "element_choices" in rules:
                unknown = [v for v in value if v not in rules["element_choices"]]
                if unknown:
                    errors.append(f"Field '{key}' contains unknown values {unknown}; allowed: {rules['element_choices']}")

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def update_config(key: str, value: Any, path: str = CONFIG_PATH) -> tuple[bool, str]:
    """
    Update a single config field with validation.
    Returns (success, message).
    """
    config = load_config(path)

    if key not in CONFIG_SCHEMA:
        return False, f"Unknown config key: {key}"

    test_config = config.copy()
    test_config[key] = value

    is_valid, errors = validate_config(test_config)
    if not is_valid:
        return False, f"Validation failed: {', '.join(errors)}"

    config[key] = value
    save_config(config, path)

    return True, f"Updated '{key}' to '{value}'"


def get_config_value(key: str, default: Any = None, path: str = CONFIG_PATH) -> Any:
    """Get a single config value with optional default."""
    try:
        config = load_config(path)
    except (OSError, json.JSONDecodeError):
        return default
    return config.get(key, default)
