"""Tests for helper descriptor construction."""

from __future__ import annotations

import dataclasses

import pytest

from jaterm_helper.helpers.descriptor import default_descriptor, read_template
from jaterm_helper.helpers.types import HelperDescriptor
from jaterm_helper.presets.const import (
    HELPER_NAME,
    HELPER_REL_DIR,
    HELPER_VERSION,
    VERSION_PLACEHOLDER,
)


def test_from_template_substitutes_every_placeholder():
    descriptor = HelperDescriptor.from_template(
        name="h",
        version="3.1.4",
        relative_install_dir="/.h/bin/",
        template=f"a {VERSION_PLACEHOLDER} b {VERSION_PLACEHOLDER}",
        placeholder=VERSION_PLACEHOLDER,
    )
    assert descriptor.payload == "a 3.1.4 b 3.1.4"
    assert descriptor.relative_install_dir == ".h/bin"


def test_install_path_joins_home_dir_and_name(descriptor):
    assert descriptor.install_dir("/home/u") == "/home/u/.jaterm/bin"
    assert descriptor.install_path("/home/u/") == "/home/u/.jaterm/bin/jaterm-helper"
    assert descriptor.install_path("/") == "/.jaterm/bin/jaterm-helper"


def test_descriptor_is_immutable(descriptor):
    with pytest.raises(dataclasses.FrozenInstanceError):
        descriptor.version = "9.9.9"


def test_bundled_template_has_placeholder():
    template = read_template()
    assert template.startswith("#!/bin/sh")
    assert VERSION_PLACEHOLDER in template


def test_default_descriptor_is_built_once():
    first = default_descriptor()
    assert first is default_descriptor()
    assert first.name == HELPER_NAME
    assert first.version == HELPER_VERSION
    assert first.relative_install_dir == HELPER_REL_DIR
    assert VERSION_PLACEHOLDER not in first.payload
    assert f'"version":"{HELPER_VERSION}"' in first.payload
