"""Make sure the helper is installed, current and healthy on a target.

Remote flow, one invocation per session:

    home -> probe -> up to date?  -> ready
                  -> consent -> mkdir -> write -> chmod -> verify -> ready
    any fatal step -> error notification, HelperStatus(ready=False)

Expected failures never raise; callers get a HelperStatus either way.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Awaitable, Callable
import inspect
import logging
from typing import Protocol

from .exceptions import HelperInstallError
from .helpers.descriptor import default_descriptor
from .helpers.health import classify_probe, needs_install, parse_health
from .helpers.local import LocalHelperInstaller
from .helpers.progress import ProgressHandler
from .helpers.types import (
    STATUS_DENIED,
    STATUS_FAILED,
    STATUS_NEEDS_INSTALL,
    STATUS_OK,
    STATUS_PROGRESS,
    STATUS_START,
    STATUS_UP_TO_DATE,
    ExecResult,
    Healthy,
    HelperDescriptor,
    HelperStatus,
    ProbeResult,
    Unreachable,
    WriteProgress,
)
from .notifier import EventListener, EventLog, Notifier, NotifierPresenter
from .presets.const import (
    CONSENT_ALWAYS,
    CONSENT_ASK,
    CONSENT_NEVER,
    CONSENT_POLICIES,
    HEALTH_COMMAND,
    INTEGRATION_DEFAULTS,
)

_LOGGER = logging.getLogger(__name__)

ConfirmCallback = Callable[[str, str], bool | Awaitable[bool]]


class Transport(Protocol):
    """Remote capabilities the bootstrap needs from the host application."""

    async def resolve_home_directory(self, session: str) -> str:
        """Return the home directory of the session user."""

    async def run_command(self, session: str, command: str) -> ExecResult:
        """Run a single shell command line."""

    async def create_directories(self, session: str, path: str) -> None:
        """Create a directory tree, succeeding if it exists."""

    async def write_file(self, session: str, path: str, content_b64: str) -> None:
        """Overwrite a file with base64-decoded content."""

    def subscribe_write_progress(
        self, handler: ProgressHandler
    ) -> Callable[[], None]:
        """Receive progress of every write; returns the unsubscribe function."""


def quote_path(path: str) -> str:
    """Single-quote a path for a POSIX shell command line."""
    return "'" + path.replace("'", "'\\''") + "'"


def health_command(install_path: str) -> str:
    """Command line probing the helper at install_path."""
    return f"{quote_path(install_path)} {HEALTH_COMMAND}"


class HelperBootstrap:
    """Detect, install and verify the helper through a transport."""

    def __init__(
        self,
        transport: Transport,
        descriptor: HelperDescriptor | None = None,
        *,
        consent: str = CONSENT_ASK,
        confirm: ConfirmCallback | None = None,
        success_dismiss_delay: float = INTEGRATION_DEFAULTS["success_dismiss_delay"],
        error_dismiss_delay: float = INTEGRATION_DEFAULTS["error_dismiss_delay"],
    ) -> None:
        """Initialize the orchestrator."""
        if consent not in CONSENT_POLICIES:
            raise ValueError(f"Unknown consent policy: {consent!r}")
        self.transport = transport
        self.descriptor = descriptor or default_descriptor()
        self.consent = consent
        self.confirm = confirm
        self.success_dismiss_delay = success_dismiss_delay
        self.error_dismiss_delay = error_dismiss_delay

    @classmethod
    def from_config(
        cls,
        transport: Transport,
        config: dict,
        descriptor: HelperDescriptor | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> HelperBootstrap:
        """Build an orchestrator from a validated config dict."""
        return cls(
            transport,
            descriptor,
            consent=config["consent"],
            confirm=confirm,
            success_dismiss_delay=config["success_dismiss_delay"],
            error_dismiss_delay=config["error_dismiss_delay"],
        )

    async def ensure_helper(
        self,
        session: str,
        notifier: Notifier | None = None,
        on_event: EventListener | None = None,
    ) -> HelperStatus:
        """Make the helper ready on the session's host.

        Never raises: every failure, expected or not, ends as
        HelperStatus(ready=False) plus an error notification.
        """
        events = EventLog()
        if notifier is not None:
            events.listen(
                NotifierPresenter(
                    notifier, self.success_dismiss_delay, self.error_dismiss_delay
                )
            )
        if on_event is not None:
            events.listen(on_event)

        _LOGGER.debug("ensure_helper: start (session %s)", session)
        try:
            return await self._ensure(session, events)
        except HelperInstallError as err:
            _LOGGER.error("Helper %s failed on %s: %s", err.step, session, err)
            events.emit(err.step, STATUS_FAILED, message=str(err))
        except Exception as err:
            _LOGGER.exception("Unexpected error ensuring helper on %s", session)
            events.emit("bootstrap", STATUS_FAILED, message=str(err) or repr(err))
        return HelperStatus(ready=False)

    async def probe(self, session: str, install_path: str) -> ProbeResult:
        """Run the health command once and classify the answer."""
        try:
            result = await self.transport.run_command(
                session, health_command(install_path)
            )
        except Exception as err:
            _LOGGER.debug("Health probe of %s could not run: %s", install_path, err)
            return Unreachable(str(err) or repr(err))
        _LOGGER.debug(
            "Health probe of %s | exit %s | %r",
            install_path,
            result.exit_code,
            result.stdout,
        )
        return classify_probe(result)

    async def _ensure(self, session: str, events: EventLog) -> HelperStatus:
        home = await _step("home", self.transport.resolve_home_directory(session))
        install_path = self.descriptor.install_path(home)
        events.emit("home", STATUS_OK, install_path=install_path)

        probe = await self.probe(session, install_path)
        if not needs_install(probe, self.descriptor.version):
            version = probe.record.version
            _LOGGER.info("Helper %s up to date at %s", version, install_path)
            events.emit(
                "probe", STATUS_UP_TO_DATE, install_path=install_path, version=version
            )
            return HelperStatus(ready=True, version=version, install_path=install_path)

        events.emit(
            "probe",
            STATUS_NEEDS_INSTALL,
            install_path=install_path,
            message=_describe_probe(probe),
            version=probe.record.version if isinstance(probe, Healthy) else None,
        )
        if not await self._consented(session, install_path, events):
            return HelperStatus(ready=False)

        await self._install(session, install_path, events)
        return await self._verify(session, install_path, events)

    async def _consented(
        self, session: str, install_path: str, events: EventLog
    ) -> bool:
        if self.consent == CONSENT_ALWAYS:
            return True
        if self.consent == CONSENT_NEVER:
            allowed = False
        elif self.confirm is None:
            return True
        else:
            describe = getattr(self.transport, "describe", None)
            target = describe(session) if callable(describe) else session
            answer = self.confirm(target, install_path)
            if inspect.isawaitable(answer):
                answer = await answer
            allowed = bool(answer)
        if not allowed:
            _LOGGER.info("Helper install to %s declined", install_path)
            events.emit("consent", STATUS_DENIED, install_path=install_path)
        return allowed

    async def _install(self, session: str, install_path: str, events: EventLog) -> None:
        install_dir = install_path.rsplit("/", 1)[0]
        _LOGGER.debug("mkdirs %s", install_dir)
        await _step("mkdir", self.transport.create_directories(session, install_dir))

        payload = self.descriptor.payload.encode("utf-8")
        content = base64.b64encode(payload).decode("ascii")
        events.emit(
            "install",
            STATUS_START,
            install_path=install_path,
            written=0,
            total=len(payload),
        )

        def _on_progress(progress: WriteProgress) -> None:
            if progress.path != install_path:
                return
            events.emit(
                "write",
                STATUS_PROGRESS,
                install_path=install_path,
                written=progress.written,
                total=progress.total,
            )

        unsubscribe = self.transport.subscribe_write_progress(_on_progress)
        try:
            _LOGGER.debug("upload start %s", install_path)
            await _step(
                "write", self.transport.write_file(session, install_path, content)
            )
        finally:
            unsubscribe()
        events.emit("write", STATUS_OK, install_path=install_path)

        _LOGGER.debug("chmod +x %s", install_path)
        chmod = await _step(
            "chmod",
            self.transport.run_command(session, f"chmod +x {quote_path(install_path)}"),
        )
        if chmod.exit_code != 0:
            raise HelperInstallError(
                "chmod", chmod.stderr.strip() or f"chmod exited with {chmod.exit_code}"
            )
        events.emit("chmod", STATUS_OK, install_path=install_path)

    async def _verify(
        self, session: str, install_path: str, events: EventLog
    ) -> HelperStatus:
        result = await _step(
            "verify", self.transport.run_command(session, health_command(install_path))
        )
        _LOGGER.debug(
            "health after install | exit %s | %r", result.exit_code, result.stdout
        )
        if result.exit_code != 0:
            raise HelperInstallError("verify", result.stderr.strip() or "health failed")

        record = parse_health(result.stdout)
        if record is None:
            _LOGGER.warning(
                "Unparseable health output after install at %s, assuming %s",
                install_path,
                self.descriptor.version,
            )
            version = self.descriptor.version
        elif not record.ok:
            raise HelperInstallError("verify", "helper reported unhealthy")
        else:
            version = record.version

        _LOGGER.info("Helper %s ready at %s", version, install_path)
        events.emit("verify", STATUS_OK, install_path=install_path, version=version)
        return HelperStatus(ready=True, version=version, install_path=install_path)


async def _step(step: str, awaitable: Awaitable):
    """Await a transport call, tagging any failure with the step name."""
    try:
        return await awaitable
    except HelperInstallError:
        raise
    except Exception as err:
        raise HelperInstallError(step, str(err) or repr(err)) from err


def _describe_probe(probe: ProbeResult) -> str:
    match probe:
        case Healthy(record=record) if not record.ok:
            return "helper reports not ok"
        case Healthy(record=record):
            return f"installed version {record.version}"
        case Unreachable(reason=reason):
            return f"not installed ({reason})"
        case _:
            return f"unhealthy ({probe.reason})"


async def ensure_helper(
    transport: Transport,
    session: str,
    notifier: Notifier | None = None,
    descriptor: HelperDescriptor | None = None,
    **kwargs,
) -> HelperStatus:
    """Shortcut for HelperBootstrap(transport, descriptor).ensure_helper()."""
    return await HelperBootstrap(transport, descriptor, **kwargs).ensure_helper(
        session, notifier
    )


async def ensure_local_helper(
    installer: LocalHelperInstaller | None = None,
) -> HelperStatus:
    """Make the helper ready on this machine; never raises."""
    try:
        installer = installer or LocalHelperInstaller()
        result = await asyncio.to_thread(installer.ensure)
    except Exception as err:
        _LOGGER.error("Local helper ensure failed: %s", err)
        return HelperStatus(ready=False)
    return HelperStatus(
        ready=bool(result.get("ok")),
        version=result.get("version"),
        install_path=result.get("path"),
    )
