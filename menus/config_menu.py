import questionary
from instagram_api.config import CONFIG_SCHEMA, update_config, validate_config
from utils.logger import log_error, log_success


def config_menu(config: dict) -> dict:
    """
    Display the configuration menu and handle user selections.
    Returns the potentially updated config dict.
    """
    while True:
        choice = questionary.select(
            "⚙️ Config Menu — What would you like to do?",
            choices=[
                "View current config",
                "Update a setting",
                "Validate configuration",
                "Back"
            ]
        ).ask()

        if choice == "View current config":
            view_config(config)

        elif choice == "Update a setting":
            config = update_setting_menu(config)

        elif choice == "Validate configuration":
            validate_config_menu(config)

        else:
            break

    return config


def view_config(config: dict):
    """Display the current configuration in a readable format."""
    print("\n" + "=" * 50)
    print("📋 Current Configuration")
    print("=" * 50)

    categories = {
        "Client": ["instagram_client_id", "instagram_redirect_uri", "instagram_scopes"],
        "Endpoint": ["instagram_api_host", "instagram_keyring_service"],
        "Timeouts (seconds)": ["instagram_request_timeout", "instagram_login_timeout"],
    }

    for category, keys in categories.items():
        print(f"\n{category}:")
        for key in keys:
            if key in config:
                value = config[key]
                if isinstance(value, list):
                    value = ", ".join(str(v) for v in value) or "(none)"
                print(f"  {key}: {value}")

    print("\n" + "=" * 50)
    input("\nPress Enter to continue...")


def update_setting_menu(config: dict) -> dict:
    """Menu to update individual settings."""
    editable_keys = list(CONFIG_SCHEMA.keys())
    editable_keys.append("Back")

    key = questionary.select(
        "Select setting to update:",
        choices=editable_keys
    ).ask()

    if key in (None, "Back"):
        return config

    schema = CONFIG_SCHEMA.get(key, {})
    current_value = config.get(key, "Not set")

    print(f"\nCurrent value: {current_value}")

    if "element_choices" in schema:
        current = current_value if isinstance(current_value, list) else []
        new_value = questionary.checkbox(
            f"Select values for {key}:",
            choices=[questionary.Choice(title=c, value=c, checked=c in current) for c in schema["element_choices"]]
        ).ask()
        if new_value is None:
            return config

    elif schema.get("type") == (int, float):
        min_val = schema.get("min", 0)
        max_val = schema.get("max", 9999)
        new_value_str = questionary.text(
            f"Enter new value for {key} ({min_val}-{max_val}):",
            default=str(current_value) if current_value != "Not set" else ""
        ).ask()

        try:
            new_value = float(new_value_str)
        except (TypeError, ValueError):
            log_error("Invalid number format")
            return config

    else:
        new_value = questionary.text(
            f"Enter new value for {key}:",
            default=str(current_value) if current_value != "Not set" else ""
        ).ask()
        if new_value is None:
            return config
        new_value = new_value.strip()

    success, message = update_config(key, new_value)

    if success:
        log_success(message)
        config[key] = new_value
    else:
        log_error(message)

    return config


def validate_config_menu(config: dict):
    """Validate the current configuration and show any errors."""
    is_valid, errors = validate_config(config)

    print("\n" + "=" * 50)
    print("🔍 Configuration Validation")
    print("=" * 50)

    if is_valid:
        log_success("Configuration is valid! ✓")
    else:
        log_error("Configuration has errors:")
        for error in errors:
            print(f"  ✗ {error}")

    print("=" * 50)
    input("\nPress Enter to continue...")
