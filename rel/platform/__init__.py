"""Platform helpers: subprocess execution and filesystem primitives."""

from .files import atomic_write_text, read_text_or_none, remove_file
from .process import ProcessError, is_process_alive, run, run_silent

__all__ = [
    "ProcessError",
    "atomic_write_text",
    "is_process_alive",
    "read_text_or_none",
    "remove_file",
    "run",
    "run_silent",
]
