# ==========================================================
# 🧹  workspace.py — Scoped temporary directory for one run
# ==========================================================
# The downloaded archive, the extracted dump and the cleaned
# dump all live here. The directory is removed when the block
# exits, whatever the reason: success, exception, or SIGTERM /
# SIGINT / SIGHUP (turned into SystemExit while the block runs).
# ==========================================================
import shutil
import signal
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from stats_restore.console import log

HANDLED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGINT", "SIGHUP") if hasattr(signal, name)
)


def _exit_on_signal(signum, frame):
    log(f"❌ Interrupted by signal {signal.Signals(signum).name}", err=True)
    raise SystemExit(1)


@contextmanager
def workspace(prefix: str = "stats-restore-") -> Iterator[Path]:
    path = Path(tempfile.mkdtemp(prefix=prefix))
    previous = {}
    for sig in HANDLED_SIGNALS:
        try:
            previous[sig] = signal.signal(sig, _exit_on_signal)
        except ValueError:
            # signal handlers can only be installed from the main thread
            break
    log(f"Created temporary directory: {path}")
    try:
        yield path
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        shutil.rmtree(path, ignore_errors=True)
        log("🧹 Cleaned up temporary files")
