"""Install and run the helper on the local machine."""

from __future__ import annotations

import logging
from pathlib import Path
import subprocess

from ..exceptions import HelperError
from ..presets.const import HEALTH_COMMAND
from .descriptor import default_descriptor
from .health import parse_health
from .types import ExecResult, HelperDescriptor

_LOGGER = logging.getLogger(__name__)


class LocalHelperInstaller:
    """Local counterpart of the remote bootstrap.

    No file transfer is involved, so detect, install and verify run as one
    blocking call: `ensure()`.
    """

    def __init__(
        self,
        descriptor: HelperDescriptor | None = None,
        home: Path | str | None = None,
        command_timeout: float | None = 30.0,
    ) -> None:
        """Initialize installer for the given home (defaults to the user's)."""
        self.descriptor = descriptor or default_descriptor()
        self.home = Path(home) if home is not None else Path.home()
        self.command_timeout = command_timeout

    @property
    def path(self) -> Path:
        """Absolute path of the local helper."""
        return self.home / self.descriptor.relative_install_dir / self.descriptor.name

    def _run(self, *args: str) -> ExecResult:
        """Run the installed helper; OSError propagates if it cannot start."""
        proc = subprocess.run(
            [str(self.path), *args],
            capture_output=True,
            text=True,
            check=False,
            timeout=self.command_timeout,
        )
        return ExecResult(
            exit_code=proc.returncode, stdout=proc.stdout, stderr=proc.stderr
        )

    def _is_current(self) -> bool:
        if not self.path.exists():
            return False
        try:
            res = self._run(HEALTH_COMMAND)
        except (OSError, subprocess.SubprocessError) as err:
            _LOGGER.debug("Local helper at %s not runnable: %s", self.path, err)
            return False
        if res.exit_code != 0:
            return False
        record = parse_health(res.stdout)
        return bool(
            record and record.ok and record.version == self.descriptor.version
        )

    def ensure(self) -> dict:
        """Make sure the local helper is installed, current and healthy.

        Returns:
            dict with keys ok, version and path.

        Raises:
            OSError: If the helper cannot be written or started.

        """
        path = self.path
        if self._is_current():
            _LOGGER.debug("Local helper up to date at %s", path)
            return {"ok": True, "version": self.descriptor.version, "path": str(path)}

        _LOGGER.info("Installing local helper %s to %s", self.descriptor.version, path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.descriptor.payload.encode("utf-8"))
        path.chmod(0o755)

        res = self._run(HEALTH_COMMAND)
        if res.exit_code != 0:
            _LOGGER.error(
                "Local helper health failed (%s): %s", res.exit_code, res.stderr
            )
            return {"ok": False, "version": None, "path": str(path)}
        record = parse_health(res.stdout)
        if record is None:
            _LOGGER.warning(
                "Unparseable local health output, assuming %s", self.descriptor.version
            )
            return {"ok": True, "version": self.descriptor.version, "path": str(path)}
        return {"ok": record.ok, "version": record.version, "path": str(path)}

    def exec(self, command: str, args: list[str] | tuple[str, ...] = ()) -> ExecResult:
        """Run an arbitrary helper command with arguments."""
        if not self.path.exists():
            raise HelperError("helper not installed")
        return self._run(command, *args)

    def installed_version(self) -> str:
        """Version this build installs."""
        return self.descriptor.version
