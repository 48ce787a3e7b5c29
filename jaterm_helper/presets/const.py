"""Constants and defaults."""

DOMAIN = "jaterm_helper"
PRESETS_DIR = "jaterm_helper.presets"

HELPER_NAME = "jaterm-helper"
HELPER_VERSION = "0.1.0"
HELPER_REL_DIR = ".jaterm-helper"
HELPER_TEMPLATE = "helper-script.sh"
VERSION_PLACEHOLDER = "HELPER_VERSION_PLACEHOLDER"

HEALTH_COMMAND = "health"

CONFIG_ENV = "JATERM_HELPER_CONFIG"
DEFAULT_CONFIG_PATH = "~/.jaterm/helper.yaml"

CONSENT_ASK = "ask"
CONSENT_ALWAYS = "always"
CONSENT_NEVER = "never"
CONSENT_POLICIES = (CONSENT_ASK, CONSENT_ALWAYS, CONSENT_NEVER)

INTEGRATION_DEFAULTS = {
    "username": "root",
    "port": 22,
    "ssh_key_path": "~/.ssh/id_ed25519",
    "connect_timeout": 5.0,
    "command_timeout": 30.0,
    "upload_chunk_size": 32768,
    "success_dismiss_delay": 1.5,
    "error_dismiss_delay": 3.0,
    "consent": CONSENT_ASK,
}
