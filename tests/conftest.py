import io
import tarfile
from pathlib import Path

import pytest

from stats_restore.config import ConnectionDescriptor
from tests.helpers import SAMPLE_DUMP


@pytest.fixture
def descriptor():
    return ConnectionDescriptor(user="svc", password="s3cr3t", host="db.example.com", port=3306, database="analytics")


@pytest.fixture
def make_archive(tmp_path):
    def _make(members, name="backup.tar.gz"):
        path = tmp_path / name
        with tarfile.open(path, "w:gz") as tar:
            for member_name, content in members.items():
                data = content.encode("utf-8")
                info = tarfile.TarInfo(member_name)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
        return path

    return _make


@pytest.fixture
def sample_dump(tmp_path) -> Path:
    path = tmp_path / "stats.sql"
    path.write_text(SAMPLE_DUMP, encoding="utf-8")
    return path
