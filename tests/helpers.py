"""Test doubles for the S3 client and PyMySQL connections."""

from datetime import datetime, timezone

import botocore.exceptions
import pymysql


def ts(hour: int, minute: int = 0, day: int = 1) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


class DummyPaginator:
    def __init__(self, pages, error=None):
        self._pages = pages
        self._error = error
        self.calls = []

    def paginate(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return iter(self._pages)


class DummyS3:
    """Just enough of a boto3 S3 client: listing, head_object, download."""

    def __init__(self, objects=(), blobs=None, page_size=2, list_error=None, download_error=None):
        contents = [{"Key": k, "Size": s, "LastModified": m} for k, s, m in objects]
        pages = [
            {"Contents": contents[i:i + page_size]} for i in range(0, len(contents), page_size)
        ] or [{}]
        self.paginator = DummyPaginator(pages, list_error)
        self.blobs = blobs or {}
        self.download_error = download_error
        self.downloads = []

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return self.paginator

    def head_object(self, Bucket, Key):
        if Key not in self.blobs:
            raise botocore.exceptions.ClientError(
                {"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject"
            )
        return {"ContentLength": len(self.blobs[Key])}

    def download_fileobj(self, bucket, key, fileobj, Callback=None):
        if self.download_error is not None:
            raise self.download_error
        data = self.blobs[key]
        fileobj.write(data)
        if Callback:
            Callback(len(data))
        self.downloads.append((bucket, key))


class DummyCursor:
    def __init__(self, conn):
        self.conn = conn
        self._result = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, args=None):
        if isinstance(query, bytes):
            self.conn.raw.append(query)
            query = query.decode("utf-8", "surrogateescape")
        self.conn.executed.append(query)
        if self.conn.fail_on and self.conn.fail_on in query:
            raise pymysql.err.ProgrammingError(1064, f"You have an error near '{self.conn.fail_on}'")
        if query.startswith("SELECT table_name"):
            self._result = [(t,) for t in self.conn.tables]
        elif query.startswith("SELECT COUNT(*)"):
            self._result = [(len(self.conn.tables),)]
        elif query == "SELECT 1":
            self._result = [(1,)]
        elif query.startswith("DROP TABLE IF EXISTS"):
            name = query[query.index("`") + 1:query.rindex("`")].replace("``", "`")
            if self.conn.fk_checks and name in self.conn.referenced:
                raise pymysql.err.IntegrityError(3730, f"Cannot drop table '{name}' referenced by a foreign key")
            if name in self.conn.tables:
                self.conn.tables.remove(name)
            self._result = []
        elif query.startswith("SET FOREIGN_KEY_CHECKS"):
            self.conn.fk_checks = query.rstrip().endswith("1")
            self._result = []
        elif query.startswith("CREATE TABLE"):
            self.conn.tables.append(query.split("`")[1])
            self._result = []
        else:
            self._result = []
        return len(self._result)

    def fetchone(self):
        return self._result[0] if self._result else None

    def fetchall(self):
        return tuple(self._result)


class DummyConn:
    def __init__(self, tables=(), referenced=(), fail_on=None):
        self.tables = list(tables)
        self.referenced = set(referenced)
        self.fail_on = fail_on
        self.fk_checks = True
        self.executed = []
        self.raw = []
        self.closed = False

    def cursor(self):
        return DummyCursor(self)

    def close(self):
        self.closed = True


SAMPLE_DUMP = """-- MySQL dump 10.13  Distrib 8.0.36, for Linux (x86_64)
--
-- Host: localhost    Database: stats
-- ------------------------------------------------------
/*!40101 SET NAMES utf8mb4 */;
SET @OLD_UNIQUE_CHECKS=@@UNIQUE_CHECKS, UNIQUE_CHECKS=0;
SET @@SESSION.SQL_LOG_BIN= 0;
SET @@session.sql_mode = 'NO_AUTO_VALUE_ON_ZERO';

--
-- GTID state at the beginning of the backup
--

SET @@GLOBAL.GTID_PURGED=/*!80000 '+'*/ '3E11FA47-71CA-11E1-9E33-C80AA9429562:1-5';

DROP TABLE IF EXISTS `visits`;
CREATE TABLE `visits` (
  `id` int NOT NULL,
  `page` varchar(255) DEFAULT NULL,
  PRIMARY KEY (`id`)
);
INSERT INTO `visits` VALUES (1,'home; index'),(2,'it''s -- fine');
/*!50001 CREATE ALGORITHM=UNDEFINED */
/*!50013 DEFINER=`admin`@`%` SQL SECURITY DEFINER */
/*!50001 VIEW `recent` AS select `visits`.`id` AS `id` from `visits` */;
"""
