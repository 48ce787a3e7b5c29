"""SSH utils: asyncssh transport for the helper bootstrap."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from pathlib import Path
import shlex
import uuid

import asyncssh

from ..exceptions import HelperError, TransportError
from ..presets.const import INTEGRATION_DEFAULTS
from .progress import ProgressBus, ProgressHandler
from .types import ExecResult, WriteProgress

_LOGGER = logging.getLogger(__name__)
logging.getLogger("asyncssh").setLevel(logging.WARNING)


class HelperSSH:
    """Async SSH client wrapper around asyncssh with small convenience helpers.

    Usage:
        async with HelperSSH("10.0.0.1", "~/.ssh/id_ed25519") as cli:
            home = await cli.home_dir()
            res = await cli.exec_command("uname -a")
    """

    def __init__(
        self,
        host: str,
        key_path: str,
        username: str = "root",
        port: int = 22,
        connect_timeout: float = 5.0,
        command_timeout: float | None = 30.0,
        chunk_size: int = 32768,
    ) -> None:
        """Initialize wrapper."""
        self.host = host
        self.key_path = key_path
        self.username = username
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.chunk_size = chunk_size
        self.conn: asyncssh.SSHClientConnection | None = None
        self.available = False

    @property
    def label(self) -> str:
        """Human readable target, e.g. root@10.0.0.1."""
        return f"{self.username}@{self.host}"

    async def __aenter__(self) -> HelperSSH:
        """Open SSH connection when entering async context."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Close SSH connection when leaving async context."""
        await self.close()

    async def connect(self) -> bool:
        """Establish SSH connection if it is not already open.

        Raises:
            TransportError: If the host cannot be reached or refuses the key.

        """
        if self.conn is not None:
            return True
        _LOGGER.debug("Trying to connect to %s:%s", self.label, self.port)

        client_keys: list | None = None
        key_file = Path(self.key_path).expanduser()
        try:
            if key_file.exists():
                key_text = await asyncio.to_thread(key_file.read_text)
                client_keys = [asyncssh.import_private_key(key_text)]
            else:
                _LOGGER.warning(
                    "SSH key not found at %s; attempting agent/defaults", key_file
                )
            self.conn = await asyncssh.connect(
                host=self.host,
                port=self.port,
                username=self.username,
                client_keys=client_keys,
                known_hosts=None,
                connect_timeout=self.connect_timeout,
            )
        except (
            TimeoutError,
            asyncssh.Error,
            asyncssh.KeyImportError,
            OSError,
            UnicodeDecodeError,
        ) as exc:
            _LOGGER.warning("SSH connect to %s failed: %s", self.label, exc)
            self.conn = None
            self.available = False
            raise TransportError(f"SSH connect to {self.label} failed: {exc}") from exc
        _LOGGER.debug("Successfully connected to %s", self.label)
        self.available = True
        return self.available

    def _require_conn(self) -> asyncssh.SSHClientConnection:
        if self.conn is None or not self.available:
            raise TransportError(f"SSH connection to {self.label} is not open")
        return self.conn

    async def exec_command(
        self, command: str, timeout: float | None = None
    ) -> ExecResult:
        """Run a remote command with a hard timeout; never raises on non-zero exit.

        Raises:
            TransportError: If the channel fails or the timeout expires.

        """
        conn = self._require_conn()
        effective_timeout = self.command_timeout if timeout is None else timeout
        try:
            _LOGGER.debug("Executing SSH command on %s | %s", self.label, command)
            result = await asyncio.wait_for(
                conn.run(f"sh -c {shlex.quote(command)}"), effective_timeout
            )
        except TimeoutError as err:
            _LOGGER.warning("SSH command timed out on %s: %s", self.label, command)
            raise TransportError(f"Command timed out: {command}") from err
        except (asyncssh.Error, OSError) as err:
            _LOGGER.warning("SSH command failed on %s: %s", self.label, err)
            raise TransportError(str(err)) from err

        exit_code = result.exit_status if result.exit_status is not None else -1
        if exit_code != 0:
            _LOGGER.debug(
                "Command \n\t%s\nexited with %s | %s", command, exit_code, result.stderr
            )
        return ExecResult(
            exit_code=exit_code,
            stdout=_as_text(result.stdout),
            stderr=_as_text(result.stderr),
        )

    async def home_dir(self) -> str:
        """Return the login user's home directory."""
        conn = self._require_conn()
        try:
            async with conn.start_sftp_client() as sftp:
                return _as_text(await sftp.realpath("."))
        except (asyncssh.Error, OSError) as err:
            raise TransportError(f"Cannot resolve home on {self.label}: {err}") from err

    async def makedirs(self, path: str) -> None:
        """Create a remote directory and its parents; existing ones are fine."""
        conn = self._require_conn()
        try:
            async with conn.start_sftp_client() as sftp:
                await sftp.makedirs(path, exist_ok=True)
        except (asyncssh.Error, OSError) as err:
            raise TransportError(f"mkdir {path} failed: {err}") from err

    async def write_bytes(
        self, path: str, data: bytes, on_progress: ProgressHandler | None = None
    ) -> None:
        """Overwrite a remote file in chunks, reporting progress after each one."""
        conn = self._require_conn()
        total = len(data)
        written = 0
        try:
            async with (
                conn.start_sftp_client() as sftp,
                sftp.open(path, "wb") as remote,
            ):
                if on_progress is not None:
                    on_progress(WriteProgress(path=path, written=0, total=total))
                while written < total:
                    chunk = data[written : written + self.chunk_size]
                    await remote.write(chunk)
                    written += len(chunk)
                    if on_progress is not None:
                        on_progress(
                            WriteProgress(path=path, written=written, total=total)
                        )
        except (asyncssh.Error, OSError) as err:
            raise TransportError(f"Upload to {path} failed: {err}") from err
        _LOGGER.debug("Uploaded %d bytes to %s:%s", total, self.label, path)

    async def close(self) -> None:
        """Close the SSH connection."""
        if self.conn is not None:
            try:
                self.conn.close()
                await self.conn.wait_closed()
            except Exception:
                _LOGGER.exception("Error closing SSH connection to %s", self.label)
            finally:
                self.conn = None
                self.available = False


class SSHTransport:
    """Transport capability over SSH/SFTP, keyed by opaque session ids.

    Usage:
        async with SSHTransport(config) as transport:
            session = await transport.open_session("10.0.0.1")
            status = await HelperBootstrap(transport).ensure_helper(session)
    """

    def __init__(
        self, config: dict | None = None, progress: ProgressBus | None = None
    ) -> None:
        """Initialize transport with merged config defaults."""
        self.config = {**INTEGRATION_DEFAULTS, **(config or {})}
        self.progress = progress or ProgressBus()
        self._sessions: dict[str, HelperSSH] = {}

    async def __aenter__(self) -> SSHTransport:
        """Enter async context."""
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Close every session when leaving async context."""
        await self.close()

    async def open_session(
        self,
        host: str,
        username: str | None = None,
        port: int | None = None,
        key_path: str | None = None,
    ) -> str:
        """Connect to a host and return the new session id."""
        client = HelperSSH(
            host=host,
            key_path=key_path or self.config["ssh_key_path"],
            username=username or self.config["username"],
            port=port or self.config["port"],
            connect_timeout=self.config["connect_timeout"],
            command_timeout=self.config["command_timeout"],
            chunk_size=self.config["upload_chunk_size"],
        )
        await client.connect()
        session = uuid.uuid4().hex
        self._sessions[session] = client
        _LOGGER.debug("Opened session %s to %s", session, client.label)
        return session

    async def close_session(self, session: str) -> None:
        """Close and forget one session; unknown ids are ignored."""
        client = self._sessions.pop(session, None)
        if client is not None:
            await client.close()

    async def close(self) -> None:
        """Close all sessions."""
        for session in list(self._sessions):
            await self.close_session(session)

    def _client(self, session: str) -> HelperSSH:
        try:
            return self._sessions[session]
        except KeyError:
            raise TransportError(f"Unknown session: {session}") from None

    def describe(self, session: str) -> str:
        """Return a readable label for the session target."""
        client = self._sessions.get(session)
        return client.label if client is not None else session

    async def resolve_home_directory(self, session: str) -> str:
        """Return the remote home directory."""
        return await self._client(session).home_dir()

    async def run_command(self, session: str, command: str) -> ExecResult:
        """Run a shell command line on the remote host."""
        return await self._client(session).exec_command(command)

    async def create_directories(self, session: str, path: str) -> None:
        """Create a remote directory tree."""
        await self._client(session).makedirs(path)

    async def write_file(self, session: str, path: str, content_b64: str) -> None:
        """Decode base64 content and overwrite the remote file with it."""
        try:
            data = base64.b64decode(content_b64, validate=True)
        except binascii.Error as err:
            raise HelperError(f"Invalid base64 content for {path}") from err
        await self._client(session).write_bytes(path, data, self.progress.publish)

    def subscribe_write_progress(self, handler: ProgressHandler):
        """Subscribe to progress of every write made through this transport."""
        return self.progress.subscribe(handler)


def _as_text(value) -> str:
    """Return str output from asyncssh, decoding bytes when needed."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
