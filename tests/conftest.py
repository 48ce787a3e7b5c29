"""Shared test fixtures: fake transport, notifier and descriptor."""

from __future__ import annotations

import asyncio
import base64
import itertools
import json
from unittest.mock import MagicMock

import pytest

from jaterm_helper.helpers.progress import ProgressBus
from jaterm_helper.helpers.types import ExecResult, HelperDescriptor, WriteProgress
from jaterm_helper.presets.const import VERSION_PLACEHOLDER

TEMPLATE = (
    "#!/bin/sh\n"
    'echo \'{"ok":true,"version":"' + VERSION_PLACEHOLDER + '"}\'\n'
)


def healthy(version: str, ok: bool = True) -> ExecResult:
    """Health command result as printed by a working helper."""
    return ExecResult(exit_code=0, stdout=json.dumps({"ok": ok, "version": version}))


class FakeTransport:
    """In-memory transport recording every call in order.

    `probes` are consumed one per health command; an Exception instance is
    raised instead of returned.
    """

    def __init__(self, home="/home/u", probes=(), homes=None):
        self.home = home
        self.homes = homes or {}
        self.probes = list(probes)
        self.calls: list[tuple[str, str]] = []
        self.files: dict[str, bytes] = {}
        self.progress = ProgressBus()
        self.foreign_events: list[WriteProgress] = []
        self.home_error: Exception | None = None
        self.mkdir_error: Exception | None = None
        self.write_error: Exception | None = None
        self.chmod_result: ExecResult | Exception = ExecResult(exit_code=0)

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]

    async def resolve_home_directory(self, session):
        self.calls.append(("home", session))
        if self.home_error is not None:
            raise self.home_error
        return self.homes.get(session, self.home)

    async def run_command(self, session, command):
        if command.startswith("chmod "):
            self.calls.append(("chmod", command))
            if isinstance(self.chmod_result, Exception):
                raise self.chmod_result
            return self.chmod_result
        self.calls.append(("probe", command))
        result = self.probes.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def create_directories(self, session, path):
        self.calls.append(("mkdir", path))
        if self.mkdir_error is not None:
            raise self.mkdir_error

    async def write_file(self, session, path, content_b64):
        self.calls.append(("write", path))
        data = base64.b64decode(content_b64)
        total = len(data)
        for event in self.foreign_events:
            self.progress.publish(event)
        self.progress.publish(WriteProgress(path=path, written=total // 2, total=total))
        await asyncio.sleep(0)
        if self.write_error is not None:
            raise self.write_error
        self.progress.publish(WriteProgress(path=path, written=total, total=total))
        self.files[path] = data

    def subscribe_write_progress(self, handler):
        return self.progress.subscribe(handler)


@pytest.fixture
def descriptor():
    return HelperDescriptor.from_template(
        name="jaterm-helper",
        version="1.2.0",
        relative_install_dir=".jaterm/bin",
        template=TEMPLATE,
        placeholder=VERSION_PLACEHOLDER,
    )


@pytest.fixture
def install_path():
    return "/home/u/.jaterm/bin/jaterm-helper"


@pytest.fixture
def notifier():
    """MagicMock notifier handing out toast-1, toast-2, ..."""
    mock = MagicMock()
    ids = itertools.count(1)
    mock.show.side_effect = lambda toast: f"toast-{next(ids)}"
    return mock
