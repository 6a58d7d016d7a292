# ==========================================================
# 🧽  sanitize.py — Make a mysqldump loadable without SUPER
# ==========================================================
# Two rule classes, applied line by line:
#   - strip:  DEFINER=<user>@<host> clauses inside view, routine
#             and trigger definitions
#   - drop:   whole lines setting session/global variables or
#             carrying GTID / replication state
#
# Extra drop patterns can be passed in (see config.py) for dump
# producers that emit statements not listed here.
# ==========================================================
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

# Order matters: the '*'-terminated form first, then whatever is left.
# The first rule only spans the user@host token and an optional
# SQL SECURITY marker, so a later '*' in the statement body is kept.
STRIP_RULES = (
    (re.compile(r"DEFINER=\S*?(?:\s+SQL SECURITY \w+)?\s*\*"), "*"),
    (re.compile(r"DEFINER=\S*"), ""),
)

DROP_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"^SET @OLD_CHARACTER_SET_CLIENT",
        r"^SET @OLD_CHARACTER_SET_RESULTS",
        r"^SET @OLD_COLLATION_CONNECTION",
        r"^SET character_set_client",
        r"^SET @OLD_UNIQUE_CHECKS",
        r"^SET @OLD_FOREIGN_KEY_CHECKS",
        r"^SET @OLD_SQL_MODE",
        r"^SET SQL_MODE",
        r"^SET @OLD_TIME_ZONE",
        r"^SET TIME_ZONE",
        r"(?i)^SET @@session\.",
        r"(?i)^SET @@global\.",
        r"^SET GLOBAL ",
        r"^SET SESSION ",
        r"^SET sql_require_primary_key",
        r"GTID_MODE",
        r"MASTER_AUTO_POSITION",
        r"SERVER_UUID",
        r"GTID_PURGED",
        r"GTID_EXECUTED",
        r"^-- GTID state",
    )
)


@dataclass
class SanitizeStats:
    lines_read: int = 0
    lines_dropped: int = 0
    clauses_stripped: int = 0

    @property
    def lines_written(self) -> int:
        return self.lines_read - self.lines_dropped


def strip_definer(line: str) -> "tuple[str, int]":
    count = 0
    for pattern, replacement in STRIP_RULES:
        line, n = pattern.subn(replacement, line)
        count += n
    return line, count


def sanitize_lines(
    lines: Iterable[str],
    extra_patterns: Sequence["re.Pattern[str]"] = (),
    stats: "SanitizeStats | None" = None,
) -> Iterator[str]:
    """Yield the kept lines, DEFINER clauses removed. Never raises."""
    stats = stats if stats is not None else SanitizeStats()
    patterns = DROP_PATTERNS + tuple(extra_patterns)
    for line in lines:
        stats.lines_read += 1
        if "DEFINER=" in line:
            line, n = strip_definer(line)
            stats.clauses_stripped += n
        if any(p.search(line) for p in patterns):
            stats.lines_dropped += 1
            continue
        yield line


def sanitize_file(src, dest, extra_patterns: Sequence["re.Pattern[str]"] = ()) -> SanitizeStats:
    """
    Write a sanitized copy of `src` to `dest`; `src` is left untouched.

    Files are handled as UTF-8 with surrogateescape and without newline
    translation, so lines that no rule touches come out byte-for-byte.
    """
    stats = SanitizeStats()
    with open(src, encoding="utf-8", errors="surrogateescape", newline="") as fin, \
            open(dest, "w", encoding="utf-8", errors="surrogateescape", newline="") as fout:
        fout.writelines(sanitize_lines(fin, extra_patterns, stats))
    return stats
