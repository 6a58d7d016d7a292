# ==========================================================
# 🐬  mysql_utils.py — MySQL helpers for the stats restore
# ==========================================================
# Provides:
#   - Connections via PyMySQL (connect timeout, 1 GiB packets)
#   - Connection test (SELECT 1)
#   - Schema reset: drop every table with FK checks disabled
#   - Dump loading with a client-side statement splitter that
#     follows the mysql CLI rules (DELIMITER, quotes, comments)
#   - Failure diagnosis by replaying the first lines of a dump
# ==========================================================
import itertools
import re
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

import pymysql

from stats_restore.config import CONNECT_TIMEOUT, DIAGNOSTIC_LINES, MAX_ALLOWED_PACKET, ConnectionDescriptor
from stats_restore.console import log
from stats_restore.errors import ConnectionFailure, RestoreFailure, SchemaResetFailure

LIST_TABLES_SQL = "SELECT table_name FROM information_schema.tables WHERE table_schema = DATABASE()"
COUNT_TABLES_SQL = "SELECT COUNT(*) FROM information_schema.tables WHERE table_schema = DATABASE()"
EXCERPT_CHARS = 200


# ---------- Connections ----------
def connect(
    db: ConnectionDescriptor,
    connect_timeout: int = CONNECT_TIMEOUT,
    max_allowed_packet: int = MAX_ALLOWED_PACKET,
):
    try:
        return pymysql.connect(
            host=db.host,
            port=db.port,
            user=db.user,
            password=db.password,
            database=db.database,
            charset="utf8mb4",
            autocommit=True,
            connect_timeout=connect_timeout,
            max_allowed_packet=max_allowed_packet,
        )
    except pymysql.MySQLError as e:
        raise ConnectionFailure(f"Cannot connect to MySQL database {db.describe()}: {e}") from e


def check_connection(db: ConnectionDescriptor, connect_timeout: int = CONNECT_TIMEOUT) -> None:
    conn = connect(db, connect_timeout=connect_timeout)
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            row = cur.fetchone()
    except pymysql.MySQLError as e:
        raise ConnectionFailure(f"Cannot query MySQL database {db.describe()}: {e}") from e
    finally:
        conn.close()
    if not row or row[0] != 1:
        raise ConnectionFailure(f"Unexpected answer to SELECT 1 from {db.describe()}: {row!r}")


# ---------- Schema ----------
def list_tables(conn) -> List[str]:
    with conn.cursor() as cur:
        cur.execute(LIST_TABLES_SQL)
        return [row[0] for row in cur.fetchall()]


def count_tables(conn) -> int:
    try:
        with conn.cursor() as cur:
            cur.execute(COUNT_TABLES_SQL)
            row = cur.fetchone()
    except pymysql.MySQLError as e:
        raise RestoreFailure(f"Cannot count tables after loading: {e}") from e
    return int(row[0]) if row else 0


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def reset_schema(conn) -> List[str]:
    """
    Drop every table of the current database and return their names.

    Foreign key checks are off while dropping so the order does not
    matter; they are switched back on even if a DROP fails. An empty
    schema issues no statements besides the table listing.
    """
    try:
        tables = list_tables(conn)
    except pymysql.MySQLError as e:
        raise SchemaResetFailure(f"Cannot list existing tables: {e}") from e
    if not tables:
        log("No existing tables to drop")
        return []

    log(f"Dropping {len(tables)} existing tables...")
    try:
        with conn.cursor() as cur:
            cur.execute("SET FOREIGN_KEY_CHECKS = 0")
            try:
                for table in tables:
                    cur.execute(f"DROP TABLE IF EXISTS {quote_identifier(table)}")
            finally:
                cur.execute("SET FOREIGN_KEY_CHECKS = 1")
    except pymysql.MySQLError as e:
        raise SchemaResetFailure(f"Dropping existing tables failed: {e}") from e
    log("Existing database cleaned")
    return tables


# ---------- Dump loading ----------
QUOTE_ENDS = {
    "'": re.compile(r"\\.|'", re.S),
    '"': re.compile(r'\\.|"', re.S),
    "`": re.compile("`"),
}


def _special_chars(delimiter: str):
    # Delimiter first: at a given position it wins over quotes and comments.
    return re.compile(re.escape(delimiter) + r"|['\"`#]|/\*|--")


def split_statements(lines: Iterable[str]) -> Iterator[Tuple[int, str]]:
    """
    Split dump text into (first_line_number, statement) pairs.

    Follows the mysql command line client: `DELIMITER x` at the start of
    a statement changes the terminator; quoted strings and identifiers
    (with backslash escapes) never end a statement; `-- `, `#` and plain
    `/* */` comments are dropped, while `/*! ... */` executable comments
    are kept verbatim. Chunks that are only comments are skipped.

    Plain text is copied in slices between special characters, so long
    extended INSERTs split in linear time.
    """
    delimiter = ";"
    special = _special_chars(delimiter)
    buf: List[str] = []
    has_content = False
    start: Optional[int] = None
    quote: Optional[str] = None
    comment: Optional[str] = None  # "skip" for /* */, "keep" for /*! */

    for lineno, line in enumerate(lines, 1):
        if quote is None and comment is None and not has_content:
            words = line.strip().split(None, 1)
            if words and words[0].upper() == "DELIMITER":
                if len(words) == 2:
                    delimiter = words[1].strip()
                    special = _special_chars(delimiter)
                buf.clear()
                continue

        i, n = 0, len(line)
        while i < n:
            if comment is not None:
                end = line.find("*/", i)
                stop = n if end == -1 else end + 2
                if comment == "keep":
                    buf.append(line[i:stop])
                if end != -1:
                    comment = None
                i = stop
                continue
            if quote is not None:
                stop = n
                for m in QUOTE_ENDS[quote].finditer(line, i):
                    if m.group() == quote:
                        stop = m.end()
                        quote = None
                        break
                buf.append(line[i:stop])
                i = stop
                continue

            m = special.search(line, i)
            pos = n if m is None else m.start()
            if pos > i:
                text = line[i:pos]
                buf.append(text)
                if text.strip():
                    has_content = True
                    if start is None:
                        start = lineno
                i = pos
            if m is None:
                break

            token = m.group()
            if token == delimiter:
                statement = "".join(buf).strip() if has_content else ""
                if statement:
                    yield start, statement
                buf.clear()
                has_content = False
                start = None
                i += len(delimiter)
            elif token == "#" or (token == "--" and (i + 2 == n or line[i + 2].isspace())):
                buf.append("\n")
                break
            elif token == "/*" and not line.startswith("/*!", i):
                comment = "skip"
                buf.append(" ")
                i += 2
            else:
                if token == "/*":
                    comment = "keep"
                    token = "/*!"
                elif token == "--":
                    token = "-"
                else:
                    quote = token
                buf.append(token)
                has_content = True
                if start is None:
                    start = lineno
                i += len(token)

    if has_content:
        statement = "".join(buf).strip()
        if statement:
            yield start, statement


def _excerpt(statement: str) -> str:
    text = " ".join(statement.split())
    return text if len(text) <= EXCERPT_CHARS else text[:EXCERPT_CHARS] + "..."


def execute_statements(conn, statements: Iterable[Tuple[int, str]]) -> int:
    count = 0
    with conn.cursor() as cur:
        for lineno, statement in statements:
            try:
                # Raw bytes: BLOB and latin1 data kept by the sanitizer are
                # surrogate-escaped and must reach the server unchanged.
                cur.execute(statement.encode("utf-8", "surrogateescape"))
            except pymysql.MySQLError as e:
                raise RestoreFailure(
                    f"Statement starting at line {lineno} failed: {e}",
                    line=lineno,
                    excerpt=_excerpt(statement),
                ) from e
            count += 1
    return count


def load_dump(conn, dump_path) -> int:
    # Execute every statement of the dump in order; returns how many ran.
    with open(dump_path, encoding="utf-8", errors="surrogateescape") as f:
        return execute_statements(conn, split_statements(f))


def write_head(src, dest, lines: int = DIAGNOSTIC_LINES) -> Path:
    with open(src, encoding="utf-8", errors="surrogateescape", newline="") as fin, \
            open(dest, "w", encoding="utf-8", errors="surrogateescape", newline="") as fout:
        fout.writelines(itertools.islice(fin, lines))
    return Path(dest)


def diagnose_failure(
    db: ConnectionDescriptor,
    dump_path,
    workdir,
    lines: int = DIAGNOSTIC_LINES,
    connect_timeout: int = CONNECT_TIMEOUT,
) -> Optional[str]:
    """
    Replay the first `lines` lines of the dump on a fresh connection.

    Purely diagnostic: returns (and logs) the first five lines of the
    error, or None when the prefix loads cleanly.
    """
    log("Checking what might have caused the error...")
    test_dump = write_head(dump_path, Path(workdir) / "test_dump.sql", lines)
    log(f"Testing first {lines} lines of dump...")
    try:
        conn = connect(db, connect_timeout=connect_timeout)
        try:
            load_dump(conn, test_dump)
        finally:
            conn.close()
    except (ConnectionFailure, RestoreFailure) as e:
        message = "\n".join(str(e).splitlines()[:5])
        log(f"   {message}", err=True)
        return message
    log(f"   First {lines} lines load without error; the failure is further into the dump.")
    return None
