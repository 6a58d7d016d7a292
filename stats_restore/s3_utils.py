# ==========================================================
# 🔧  S3 + Archiving Utilities for the Stats Backup Restore
# ==========================================================
# Provides:
#   - S3 client setup for Scaleway Object Storage (boto3)
#   - Backup lookup: today's newest stats-backup-file-*.tar.gz
#   - Download with progress bars (tqdm)
#   - .tar.gz extract + lookup of the contained .sql dump
#
# Defaults assume:
#   - Endpoint: https://s3.fr-par.scw.cloud
#   - Region:   fr-par
#   - Bucket:   lucca-analytics
# ==========================================================
import os
import tarfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

import boto3
import botocore.exceptions
from tqdm import tqdm

from stats_restore.config import BACKUP_PREFIX, BACKUP_SUFFIX
from stats_restore.console import is_tty, log
from stats_restore.errors import ArchiveCorrupt, DumpMissing, ObjectNotFound, TransportFailure

TRANSPORT_ERRORS = (botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError)


@dataclass(frozen=True)
class BackupObject:
    key: str
    size: int
    last_modified: datetime

    @property
    def name(self) -> str:
        return os.path.basename(self.key)


# ---------- AWS / S3 helpers ----------
def get_s3_client(access_key: str, secret_key: str, endpoint: str, region: str):
    # Return a boto3 S3 client bound to the Scaleway endpoint with explicit credentials.
    session = boto3.session.Session(
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
    )
    return session.client("s3", endpoint_url=endpoint, region_name=region)


def list_backups(s3, bucket: str, prefix: str = "") -> Iterator[BackupObject]:
    # Yield every object in the bucket, in listing order.
    paginator = s3.get_paginator("list_objects_v2")
    try:
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                yield BackupObject(obj["Key"], int(obj.get("Size", 0)), obj["LastModified"])
    except TRANSPORT_ERRORS as e:
        raise TransportFailure(f"Failed to list s3://{bucket}/: {e}") from e


def select_latest(objects: List[BackupObject], pattern: str, suffix: str = BACKUP_SUFFIX) -> Optional[BackupObject]:
    """
    Pick the newest object whose key contains `pattern` and ends with `suffix`.

    sorted() is stable, so equal timestamps keep listing order and the
    first listed of them wins.
    """
    matches = [o for o in objects if pattern in o.key and o.key.endswith(suffix)]
    if not matches:
        return None
    return sorted(matches, key=lambda o: o.last_modified, reverse=True)[0]


def log_listing(objects: List[BackupObject], needle: str = BACKUP_PREFIX) -> None:
    log("Available backup files:", err=True)
    related = [o for o in objects if needle in o.key]
    if not related:
        log("   (none)", err=True)
    for obj in related:
        log(f"   {obj.last_modified:%Y-%m-%d %H:%M:%S} {obj.size:>12} {obj.key}", err=True)


def find_latest_backup(s3, bucket: str, pattern: str, suffix: str = BACKUP_SUFFIX) -> BackupObject:
    # Return today's newest backup or raise ObjectNotFound; older days are never considered.
    objects = list(list_backups(s3, bucket))
    latest = select_latest(objects, pattern, suffix)
    if latest is None:
        log(f"❌ No backup files found matching pattern {pattern}*{suffix}", err=True)
        log_listing(objects)
        raise ObjectNotFound(f"No backup files found matching pattern {pattern}*{suffix}")
    return latest


def download_file(s3, bucket: str, key: str, local_path: str, progress: bool = False) -> None:
    try:
        meta = s3.head_object(Bucket=bucket, Key=key)
        total = meta["ContentLength"]
        with open(local_path, "wb") as f, tqdm(
            total=total, unit="B", unit_scale=True, disable=not progress or not is_tty(),
            desc=f"Downloading {os.path.basename(local_path)}"
        ) as bar:
            s3.download_fileobj(bucket, key, f, Callback=lambda n: bar.update(n))
    except TRANSPORT_ERRORS as e:
        raise TransportFailure(f"Failed to download backup file {key}: {e}") from e
    log(f"✅ Downloaded s3://{bucket}/{key}")


# ---------- Archive helpers ----------
def _is_within(root: Path, target: Path) -> bool:
    try:
        target.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def _check_members(tar: tarfile.TarFile, dest: Path) -> None:
    for member in tar.getmembers():
        if not _is_within(dest, dest / member.name):
            raise ArchiveCorrupt(f"Archive member escapes workspace: {member.name}")
        if member.islnk() or member.issym():
            base = dest if member.islnk() else (dest / member.name).parent
            if os.path.isabs(member.linkname) or not _is_within(dest, base / member.linkname):
                raise ArchiveCorrupt(f"Archive link escapes workspace: {member.name} -> {member.linkname}")


def extract_archive(archive_path: str, dest_dir: str) -> None:
    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    log("📦 Extracting archive using Python tarfile ...")
    try:
        with tarfile.open(archive_path, mode="r:gz") as tar:
            _check_members(tar, dest)
            if hasattr(tarfile, "data_filter"):
                tar.extractall(path=dest, filter="data")
            else:
                tar.extractall(path=dest)
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveCorrupt(f"Failed to extract {os.path.basename(archive_path)}: {e}") from e


def find_dump_file(root: str, suffix: str = ".sql") -> Path:
    # First regular *.sql file in a sorted, top-down walk of root.
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if filename.endswith(suffix) and path.is_file():
                return path

    log("❌ No MySQL dump file found in the backup archive", err=True)
    log(f"   Contents of {root}:", err=True)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            log(f"   {os.path.relpath(os.path.join(dirpath, filename), root)}", err=True)
    raise DumpMissing("No MySQL dump file found in the backup archive")
