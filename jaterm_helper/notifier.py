"""Turn bootstrap events into user-visible progress notifications."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import itertools
import logging
from typing import Protocol

from .helpers.types import (
    STATUS_FAILED,
    STATUS_OK,
    STATUS_PROGRESS,
    STATUS_START,
    BootstrapEvent,
)

_LOGGER = logging.getLogger(__name__)

EventListener = Callable[[BootstrapEvent], None]


class Notifier(Protocol):
    """Toast-like progress indicator supplied by the host application."""

    def show(self, toast: dict) -> str:
        """Open an indicator and return its id."""

    def update(self, toast_id: str, patch: dict) -> None:
        """Patch an open indicator."""

    def dismiss(self, toast_id: str) -> None:
        """Close an indicator."""


class LogNotifier:
    """Notifier that writes toasts to the log; used by the CLI."""

    def __init__(self) -> None:
        """Initialize id counter."""
        self._ids = itertools.count(1)

    def show(self, toast: dict) -> str:
        """Log a new toast."""
        toast_id = f"toast-{next(self._ids)}"
        level = logging.ERROR if toast.get("kind") == "error" else logging.INFO
        _LOGGER.log(level, "%s: %s", toast.get("title"), toast.get("message", ""))
        return toast_id

    def update(self, toast_id: str, patch: dict) -> None:
        """Log progress and title changes."""
        progress = patch.get("progress")
        if progress:
            _LOGGER.debug(
                "%s: %s/%s bytes", toast_id, progress["current"], progress["total"]
            )
        if "title" in patch:
            _LOGGER.info("%s", patch["title"])

    def dismiss(self, toast_id: str) -> None:
        """Nothing to close in a log."""


class EventLog:
    """Ordered record of bootstrap events with fan-out to listeners."""

    def __init__(self) -> None:
        """Initialize empty log."""
        self.events: list[BootstrapEvent] = []
        self._listeners: list[EventListener] = []

    def listen(self, listener: EventListener) -> None:
        """Add a listener for future events."""
        self._listeners.append(listener)

    def emit(self, step: str, status: str, **fields) -> BootstrapEvent:
        """Record an event and hand it to every listener."""
        event = BootstrapEvent(step=step, status=status, **fields)
        self.events.append(event)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                _LOGGER.exception("Event listener failed on %s/%s", step, status)
        return event


class NotifierPresenter:
    """Event listener driving a Notifier for one bootstrap run.

    Notifier failures are logged and never reach the bootstrap.
    """

    def __init__(
        self,
        notifier: Notifier,
        success_dismiss_delay: float = 1.5,
        error_dismiss_delay: float = 3.0,
    ) -> None:
        """Initialize presenter."""
        self.notifier = notifier
        self.success_dismiss_delay = success_dismiss_delay
        self.error_dismiss_delay = error_dismiss_delay
        self.toast_id: str | None = None

    def __call__(self, event: BootstrapEvent) -> None:
        """Map one event onto notifier calls."""
        if event.step == "install" and event.status == STATUS_START:
            self.toast_id = self._call(
                "show",
                {
                    "title": "Installing helper",
                    "message": event.install_path,
                    "progress": {"current": 0, "total": event.total},
                    "kind": "info",
                },
            )
        elif event.step == "write" and event.status == STATUS_PROGRESS:
            if self.toast_id is not None:
                self._call(
                    "update",
                    self.toast_id,
                    {"progress": {"current": event.written, "total": event.total}},
                )
        elif event.step == "verify" and event.status == STATUS_OK:
            if self.toast_id is not None:
                self._call(
                    "update", self.toast_id, {"title": "Helper ready", "kind": "success"}
                )
                self._dismiss_later(self.toast_id, self.success_dismiss_delay)
                self.toast_id = None
        elif event.status == STATUS_FAILED:
            if self.toast_id is not None:
                self._call("dismiss", self.toast_id)
                self.toast_id = None
            error_id = self._call(
                "show",
                {
                    "title": "Helper install failed",
                    "message": event.message or "unknown error",
                    "kind": "error",
                },
            )
            if error_id is not None:
                self._dismiss_later(error_id, self.error_dismiss_delay)

    def _call(self, method: str, *args):
        try:
            return getattr(self.notifier, method)(*args)
        except Exception:
            _LOGGER.warning("Notifier %s failed", method, exc_info=True)
            return None

    def _dismiss_later(self, toast_id: str, delay: float) -> None:
        """Dismiss after a delay on the running loop, or right away without one."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._call("dismiss", toast_id)
            return
        loop.call_later(delay, self._call, "dismiss", toast_id)
