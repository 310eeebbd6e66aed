import asyncio

import questionary

from instagram_api.auth import check_instagram_credentials, instagram_app_setup_instructions
from instagram_api.client import InstagramClient
from instagram_api.errors import ErrorKind, InstagramError
from instagram_api.scopes import Scope
from utils.logger import log_error, log_info, log_success, log_warning


def instagram_menu(config: dict) -> None:
    """Login, session status, profile lookup and logout."""
    client = InstagramClient(config)

    while True:
        choice = questionary.select(
            "📷 Instagram — Choose an option:",
            choices=[
                "Authenticate with Instagram",
                "Show session status",
                "Show my profile",
                "Show recent media",
                "Setup help",
                "Log out",
                "Back"
            ]
        ).ask()

        if choice == "Authenticate with Instagram":
            _instagram_authenticate(client, config)

        elif choice == "Show session status":
            _instagram_session_status(client)

        elif choice == "Show my profile":
            _instagram_profile(client)

        elif choice == "Show recent media":
            _instagram_recent_media(client)

        elif choice == "Setup help":
            _instagram_setup_help(config)

        elif choice == "Log out":
            _instagram_logout(client)

        else:
            break


def _instagram_setup_help(config: dict) -> None:
    creds = check_instagram_credentials(config)
    log_info("\n" + "=" * 72)
    log_info("INSTAGRAM API SETUP")
    log_info("=" * 72)
    log_info(instagram_app_setup_instructions(redirect_uri=creds.get("redirect_uri") or ""))
    log_info("Current config status:")
    log_info(f"- instagram_client_id: {'SET' if creds.get('client_id') else 'NOT SET'}")
    log_info(f"- instagram_redirect_uri: {creds.get('redirect_uri') or 'NOT SET'}")
    log_info(f"- instagram_scopes: {', '.join(creds.get('scopes') or [])}")
    log_info("")
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Instagram credentials are incomplete.")
    else:
        log_info(creds.get("message") or "Instagram credentials look OK.")
    log_info("=" * 72 + "\n")


def _selected_scopes(config: dict) -> list:
    scopes = []
    for raw in config.get("instagram_scopes") or []:
        try:
            scopes.append(Scope(raw))
        except ValueError:
            log_warning(f"Ignoring unknown scope in config: {raw}")
    return scopes or [Scope.BASIC]


def _instagram_authenticate(client: InstagramClient, config: dict) -> None:
    if client.is_authenticated():
        if not questionary.confirm("A session already exists. Log in again?", default=False).ask():
            return

    try:
        asyncio.run(client.login(_selected_scopes(config)))
    except InstagramError as e:
        if e.kind == ErrorKind.MISSING_CLIENT_CONFIG:
            log_warning(str(e))
            _instagram_setup_help(config)
        elif e.kind == ErrorKind.CANCELLED:
            log_warning("Instagram authentication cancelled.")
        else:
            log_error(f"Instagram authentication failed: {e}")
        return

    log_success("Instagram authentication successful.")


def _instagram_session_status(client: InstagramClient) -> None:
    if client.is_authenticated():
        log_info("Instagram session: ACTIVE (token stored in the system keyring)")
    else:
        log_info("Instagram session: NONE. Run 'Authenticate with Instagram' first.")


async def _fetch_with_client(client: InstagramClient, fetch):
    async with client:
        return await fetch()


def _run_call(client: InstagramClient, fetch, what: str):
    try:
        return asyncio.run(_fetch_with_client(client, fetch))
    except InstagramError as e:
        if e.kind == ErrorKind.INVALID_REQUEST and e.error_type == "OAuthAccessTokenException":
            log_warning("The stored token was rejected. Log in again.")
        log_error(f"Could not load {what}: {e}")
        return None


def _instagram_profile(client: InstagramClient) -> None:
    me = _run_call(client, lambda: client.user("self"), "profile")
    if not me:
        return

    counts = me.get("counts") or {}
    log_info(f"Signed in as: {me.get('username')} ({me.get('full_name') or 'no name'})")
    log_info(
        f"Media: {counts.get('media', '?')} | Followers: {counts.get('followed_by', '?')} | Following: {counts.get('follows', '?')}"
    )


def _instagram_recent_media(client: InstagramClient) -> None:
    items = _run_call(client, lambda: client.recent_media("self", count=10), "recent media")
    if items is None:
        return

    if not items:
        log_info("No media found for this account.")
        return

    for item in items:
        caption = ((item.get("caption") or {}).get("text") or "").replace("\n", " ")
        log_info(f"- {item.get('id')} [{item.get('type')}] {caption[:60]}")


def _instagram_logout(client: InstagramClient) -> None:
    if client.logout():
        log_success("Logged out. The stored token was removed.")
    else:
        log_error(f"Could not remove the stored token (code: {client.credential_store.last_error_code}).")
