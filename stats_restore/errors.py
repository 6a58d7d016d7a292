# ==========================================================
# ❌  errors.py — Failure taxonomy for the restore run
# ==========================================================
# Every failure is fatal. Stages raise one of these; only
# restore.main() turns them into a log line and exit status 1.
# ==========================================================


class RestoreError(RuntimeError):
    """Base class for all run failures. `stage` names the failing step."""

    stage = "restore"


class PrerequisiteMissing(RestoreError):
    stage = "validate"


class ConfigurationInvalid(RestoreError):
    stage = "validate"


class ObjectNotFound(RestoreError):
    stage = "locate"


class TransportFailure(RestoreError):
    stage = "fetch"


class ArchiveCorrupt(RestoreError):
    stage = "extract"


class DumpMissing(RestoreError):
    stage = "extract"


class ConnectionFailure(RestoreError):
    stage = "connect"


class RestoreFailure(RestoreError):
    stage = "load"

    def __init__(self, message: str, line: int = 0, excerpt: str = ""):
        super().__init__(message)
        self.line = line
        self.excerpt = excerpt


class SchemaResetFailure(RestoreFailure):
    stage = "reset"
