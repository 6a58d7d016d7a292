# ==========================================================
# 🖥️  console.py — Console helpers shared by all restore stages
# ==========================================================
# Every diagnostic goes through log(): one timestamped line,
# flushed immediately so schedulers capture it in order.
# ==========================================================
import sys
from datetime import datetime

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def log(msg: str, err: bool = False) -> None:
    stamp = datetime.now().strftime(TIMESTAMP_FORMAT)
    print(f"[{stamp}] {msg}", file=sys.stderr if err else sys.stdout, flush=True)


def is_tty() -> bool:
    try:
        return sys.stdout.isatty()
    except Exception:
        return False
