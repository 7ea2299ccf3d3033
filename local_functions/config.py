"""
Configuration constants for the local functions emulator.

Everything tunable lives here as a module-level constant. The CLI overrides
host/port/log level; tests override the rest by passing keyword arguments
(or by monkeypatching these names).
"""
from pathlib import Path

# ------------------------------------------------------------------
# HTTP server
# ------------------------------------------------------------------

HOST = "127.0.0.1"
PORT = 9000

# ------------------------------------------------------------------
# Project layout
# ------------------------------------------------------------------

# Action sources live under <project_root>/packages/<package>/<action>/
PACKAGES_DIR = Path("packages")
DESCRIPTOR_FILE = "package.json"
DEFAULT_ENTRYPOINT = "index"
DEFAULT_MAIN_EXPORT = "main"

# Only one runtime family is emulated.
SUPPORTED_RUNTIME_PREFIX = "nodejs:"

# ------------------------------------------------------------------
# Builds
# ------------------------------------------------------------------

ONE_MINUTE_SEC = 60
BUILD_COMMAND = ["npm", "run", "build"]
DEFAULT_BUILD_TIMEOUT_SEC = 2 * ONE_MINUTE_SEC
MAX_BUILD_TIMEOUT_SEC = 15 * ONE_MINUTE_SEC

# Pause after a build finishes before file changes may trigger another one.
# Absorbs the events produced by the build's own writes.
QUIESCENCE_DELAY_SEC = 0.5

# ------------------------------------------------------------------
# Invocation
# ------------------------------------------------------------------

NODE_BINARY = "node"
RESULT_MARKER = "RESULT:"
