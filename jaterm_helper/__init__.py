"""Bootstrap of the jaterm helper on remote hosts and the local machine."""

from .bootstrap import (
    HelperBootstrap,
    Transport,
    ensure_helper,
    ensure_local_helper,
    health_command,
    quote_path,
)
from .exceptions import ConfigError, HelperError, HelperInstallError, TransportError
from .helpers.descriptor import default_descriptor
from .helpers.local import LocalHelperInstaller
from .helpers.progress import ProgressBus
from .helpers.ssh_client import SSHTransport
from .helpers.types import (
    BootstrapEvent,
    ExecResult,
    HealthRecord,
    HelperDescriptor,
    HelperStatus,
    WriteProgress,
)
from .notifier import LogNotifier, Notifier, NotifierPresenter

__version__ = "0.1.0"

__all__ = [
    "BootstrapEvent",
    "ConfigError",
    "ExecResult",
    "HealthRecord",
    "HelperBootstrap",
    "HelperDescriptor",
    "HelperError",
    "HelperInstallError",
    "HelperStatus",
    "LocalHelperInstaller",
    "LogNotifier",
    "Notifier",
    "NotifierPresenter",
    "ProgressBus",
    "SSHTransport",
    "Transport",
    "TransportError",
    "WriteProgress",
    "default_descriptor",
    "ensure_helper",
    "ensure_local_helper",
    "health_command",
    "quote_path",
]
