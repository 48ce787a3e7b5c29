"""Typed values passed around the bootstrap (dataclasses, no TypedDict)."""

from __future__ import annotations

from dataclasses import asdict, dataclass

# Event statuses emitted by the orchestrator.
STATUS_START = "start"
STATUS_PROGRESS = "progress"
STATUS_OK = "ok"
STATUS_UP_TO_DATE = "up_to_date"
STATUS_NEEDS_INSTALL = "needs_install"
STATUS_DENIED = "denied"
STATUS_FAILED = "failed"


@dataclass(frozen=True, slots=True)
class HelperDescriptor:
    """Static metadata of the helper artifact.

    The payload is final: the version placeholder has already been replaced.
    Use `from_template()` to build one from a raw script.
    """

    name: str
    version: str
    relative_install_dir: str
    payload: str

    @classmethod
    def from_template(
        cls,
        name: str,
        version: str,
        relative_install_dir: str,
        template: str,
        placeholder: str,
    ) -> HelperDescriptor:
        """Build a descriptor, substituting the version placeholder once."""
        return cls(
            name=name,
            version=version,
            relative_install_dir=relative_install_dir.strip("/"),
            payload=template.replace(placeholder, version),
        )

    def install_dir(self, home: str) -> str:
        """Return the install directory below the given home directory."""
        return f"{home.rstrip('/')}/{self.relative_install_dir}"

    def install_path(self, home: str) -> str:
        """Return the absolute helper path below the given home directory."""
        return f"{self.install_dir(home)}/{self.name}"


@dataclass(slots=True)
class HelperStatus:
    """Outcome of an ensure call. `ready=False` means do not rely on the helper."""

    ready: bool
    version: str | None = None
    install_path: str | None = None

    def as_dict(self) -> dict:
        """Return a JSON friendly dict."""
        return asdict(self)


@dataclass(slots=True)
class ExecResult:
    """Completed command: exit code and captured output."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True, slots=True)
class WriteProgress:
    """Progress of one in-flight file write."""

    path: str
    written: int
    total: int


@dataclass(frozen=True, slots=True)
class HealthRecord:
    """Validated output of `<helper> health`."""

    ok: bool
    version: str


@dataclass(frozen=True, slots=True)
class Healthy:
    """Probe ran and returned a valid health record."""

    record: HealthRecord


@dataclass(frozen=True, slots=True)
class Unhealthy:
    """Probe ran but exited non-zero or printed something unusable."""

    reason: str


@dataclass(frozen=True, slots=True)
class Unreachable:
    """Probe command could not be run at all."""

    reason: str


ProbeResult = Healthy | Unhealthy | Unreachable


@dataclass(frozen=True, slots=True)
class BootstrapEvent:
    """One step transition reported by the orchestrator."""

    step: str
    status: str
    install_path: str | None = None
    message: str | None = None
    version: str | None = None
    written: int | None = None
    total: int | None = None
