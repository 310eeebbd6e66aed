import json

from instagram_api.config import load_config, validate_config
from utils.logger import setup_logging, log_info, log_error, log_warning
from menus.main_menu import main_menu
from menus.instagram_menu import instagram_menu
from menus.config_menu import config_menu


def main() -> int:
    setup_logging()

    try:
        config = load_config()
    except FileNotFoundError as e:
        log_error(f"Config file not found: {e}")
        log_error("Please create config.json with instagram_client_id and instagram_redirect_uri.")
        return 1
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        return 1

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_warning(error)

    while True:
        choice = main_menu()

        # Instagram Menu
        if choice == "Instagram Menu":
            instagram_menu(config)

        # Config Menu
        elif choice == "Config Menu":
            config = config_menu(config)

        # Exit
        elif choice == "Exit":
            log_info("Exiting program...")
            break

        else:
            log_error("Invalid choice.")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
