"""Bundled presets: constants and the helper script template."""
