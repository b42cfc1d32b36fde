"""Small shared constants for pydrush modules.

Kept separate so the CLI, the preflight hooks and the backend invoker can
share names without importing each other.
"""

from __future__ import annotations

COMMAND = "pydrush"
CONFIG_ENV_VAR = "PYDRUSH_CONFIG"

DEFAULT_REMOTE_SCRIPT = "drush"
DEFAULT_SSH_OPTIONS = "-o PasswordAuthentication=no"

BACKEND_OUTPUT_START = "DRUSH_BACKEND_OUTPUT_START>>>"
BACKEND_OUTPUT_END = "<<<DRUSH_BACKEND_OUTPUT_END"

EXIT_TIMEOUT = 124
EXIT_NOT_EXECUTABLE = 127
EXIT_INTERRUPTED = 130
