import questionary


def main_menu() -> str:
    return questionary.select(
        "🏠 Main Menu — What would you like to do?",
        choices=[
            "Instagram Menu",
            "Config Menu",
            "Exit"
        ]
    ).ask() or "Exit"
