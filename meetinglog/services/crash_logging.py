import faulthandler
import os
from typing import IO, Optional

_crash_file_handle: Optional[IO[str]] = None


def enable_crash_logging(logs_dir: str) -> str:
    """Dump tracebacks of all threads to logs/crash.log on fatal signals."""
    global _crash_file_handle
    os.makedirs(logs_dir, exist_ok=True)
    crash_log_path = os.path.join(logs_dir, "crash.log")

    if _crash_file_handle is None:
        _crash_file_handle = open(crash_log_path, "a", encoding="utf-8")
        faulthandler.enable(file=_crash_file_handle, all_threads=True)
    return crash_log_path


def disable_crash_logging() -> None:
    global _crash_file_handle
    if _crash_file_handle is None:
        return
    faulthandler.disable()
    _crash_file_handle.close()
    _crash_file_handle = None
