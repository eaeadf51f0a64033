"""
Observability for SharedTool: per-run debug file and startup diagnostics.
"""

from .debug_log import (
    configure_console_log,
    configure_debug_log,
    debug_log_path,
    dump_diagnostics,
)

__all__ = [
    "configure_console_log",
    "configure_debug_log",
    "debug_log_path",
    "dump_diagnostics",
]
