# ==========================================================
# ✅  checks.py — Prerequisite checks before any remote call
# ==========================================================
# Verifies that the storage and database client libraries can
# be imported and that the required credentials are set.
# Every check runs; all failures are reported together.
# ==========================================================
import importlib.util
from typing import Iterable, List, Mapping

from stats_restore.config import OPTIONAL_VARS, REQUIRED_VARS, URL_FORMAT
from stats_restore.console import log
from stats_restore.errors import PrerequisiteMissing

# import name -> what it stands in for
REQUIRED_MODULES = {
    "boto3": "S3 client (boto3)",
    "pymysql": "MySQL client (PyMySQL)",
}


def missing_modules(modules: Mapping[str, str] = REQUIRED_MODULES) -> List[str]:
    return [label for name, label in modules.items() if importlib.util.find_spec(name) is None]


def missing_variables(environ: Mapping[str, str], names: Iterable[str] = REQUIRED_VARS) -> List[str]:
    return [name for name in names if not (environ.get(name) or "").strip()]


def validate_environment(environ: Mapping[str, str], modules: Mapping[str, str] = REQUIRED_MODULES) -> None:
    """Raise PrerequisiteMissing naming every missing tool and variable."""
    problems = []

    for label in missing_modules(modules):
        log(f"❌ {label} not found. Please install it.", err=True)
        problems.append(label)
    if not problems:
        log("✅ Storage and database clients ready")

    variables = missing_variables(environ)
    if variables:
        log(f"❌ Missing required environment variables: {', '.join(variables)}", err=True)
        log(f"   Required: SCALEWAY_ACCESS_KEY, SCALEWAY_SECRET_KEY, DATABASE_URL ({URL_FORMAT})", err=True)
        optional = ", ".join(f"{k} (default: {v})" for k, v in OPTIONAL_VARS.items())
        log(f"   Optional: {optional}", err=True)
        problems.extend(variables)

    if problems:
        raise PrerequisiteMissing(f"Missing prerequisites: {', '.join(problems)}")
