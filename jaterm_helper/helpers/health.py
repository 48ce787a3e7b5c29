"""Parse and classify `<helper> health` output."""

from __future__ import annotations

import json
import logging

import voluptuous as vol

from .types import (
    ExecResult,
    HealthRecord,
    Healthy,
    ProbeResult,
    Unhealthy,
    Unreachable,
)

_LOGGER = logging.getLogger(__name__)

HEALTH_SCHEMA = vol.Schema(
    {
        vol.Required("ok"): bool,
        vol.Required("version"): str,
    },
    extra=vol.ALLOW_EXTRA,
)


def parse_health(stdout: str) -> HealthRecord | None:
    """Return the health record printed by the helper, or None if unusable."""
    try:
        data = HEALTH_SCHEMA(json.loads(stdout))
    except ValueError:
        _LOGGER.debug("Health output is not JSON: %r", stdout)
        return None
    except vol.Invalid as err:
        _LOGGER.debug("Health output rejected (%s): %r", err, stdout)
        return None
    return HealthRecord(ok=data["ok"], version=data["version"])


def classify_probe(result: ExecResult) -> ProbeResult:
    """Turn a completed health command into a probe result."""
    if result.exit_code != 0:
        return Unhealthy(
            result.stderr.strip() or f"health exited with {result.exit_code}"
        )
    record = parse_health(result.stdout)
    if record is None:
        return Unhealthy("unparseable health output")
    return Healthy(record)


def needs_install(probe: ProbeResult, version: str) -> bool:
    """Decide whether the helper must be (re)installed.

    Only a healthy helper reporting exactly `version` is kept.
    """
    match probe:
        case Healthy(record=record):
            return not (record.ok and record.version == version)
        case Unhealthy() | Unreachable():
            return True
    raise TypeError(f"Unknown probe result: {probe!r}")
