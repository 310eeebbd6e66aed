"""Browsing-surface capabilities used by the login flow.

A surface shows the authorize page and reports what happens inside it to a
``NavigationObserver``. The observer answers every navigation synchronously
with ALLOW or CANCEL before the surface proceeds. One surface implementation
exists per host UI; ``PromptBrowsingSurface`` is the terminal one.
"""

import asyncio
import logging
import webbrowser
from enum import Enum
from typing import Optional, Protocol

import questionary

logger = logging.getLogger(__name__)


class NavigationDecision(str, Enum):
    ALLOW = "allow"
    CANCEL = "cancel"


class NavigationObserver(Protocol):
    def on_navigation_requested(self, url: str) -> NavigationDecision:
        ...

    def on_response_received(self, status_code: int, url: str = "") -> NavigationDecision:
        ...

    def on_dismissed(self, error: Optional[BaseException] = None) -> None:
        """The surface went away: the user backed out, or it crashed with ``error``."""
        ...


class BrowsingSurface(Protocol):
    def present(self, url: str, observer: NavigationObserver) -> None:
        ...

    def dismiss(self) -> None:
        ...


class PromptBrowsingSurface:
    """Terminal surface: opens the system browser, then asks for the redirect URL.

    The redirect target is never fetched. The user copies the final URL from
    the browser's address bar (it carries ``#access_token=...``) and pastes it
    back; that pasted URL is the navigation the observer gets to decide on.
    An empty answer (or Ctrl-C) dismisses the surface.
    """

    def __init__(self, *, open_browser: bool = True):
        self.open_browser = open_browser
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    def present(self, url: str, observer: NavigationObserver) -> None:
        self._closed = False
        task = asyncio.ensure_future(self._run(url, observer))
        task.add_done_callback(lambda t: self._on_task_done(t, observer))
        self._task = task

    def dismiss(self) -> None:
        self._closed = True
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _on_task_done(self, task: asyncio.Task, observer: NavigationObserver) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None or self._closed:
            return

        # The prompt died (no TTY, broken browser hook); end the login now.
        self._closed = True
        self._task = None
        logger.debug("Prompt surface failed: %r", error)
        observer.on_dismissed(error)

    async def _run(self, url: str, observer: NavigationObserver) -> None:
        questionary.print("Authorize this application in your browser:", style="bold")
        questionary.print(url)

        if self.open_browser:
            try:
                webbrowser.open(url)
            except webbrowser.Error as e:
                logger.debug("Could not open a browser: %s", e)

        while not self._closed:
            pasted = await questionary.text(
                "Paste the full redirect URL (leave empty to cancel):"
            ).ask_async()
            pasted = (pasted or "").strip()

            if self._closed:
                return

            if not pasted:
                self._closed = True
                observer.on_dismissed()
                return

            if observer.on_navigation_requested(pasted) == NavigationDecision.CANCEL:
                return

            questionary.print("That URL has no #access_token=... fragment. Try again.", style="fg:yellow")
