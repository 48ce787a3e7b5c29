"""Load the helper descriptor from the bundled script template."""

from __future__ import annotations

import functools
from importlib import resources
import logging

from ..presets.const import (
    HELPER_NAME,
    HELPER_REL_DIR,
    HELPER_TEMPLATE,
    HELPER_VERSION,
    PRESETS_DIR,
    VERSION_PLACEHOLDER,
)
from .types import HelperDescriptor

_LOGGER = logging.getLogger(__name__)


def read_template(name: str = HELPER_TEMPLATE) -> str:
    """Read a script template shipped in the presets package."""
    return resources.files(PRESETS_DIR).joinpath(name).read_text(encoding="utf-8")


@functools.lru_cache(maxsize=1)
def default_descriptor() -> HelperDescriptor:
    """Return the process-wide helper descriptor, built on first use."""
    descriptor = HelperDescriptor.from_template(
        name=HELPER_NAME,
        version=HELPER_VERSION,
        relative_install_dir=HELPER_REL_DIR,
        template=read_template(),
        placeholder=VERSION_PLACEHOLDER,
    )
    _LOGGER.debug(
        "Loaded helper %s %s (%d bytes)",
        descriptor.name,
        descriptor.version,
        len(descriptor.payload),
    )
    return descriptor
