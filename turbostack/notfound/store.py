"""404 hit storage: a MySQL table of missing pages, counted per (uri, referer, ip).

A repeat hit bumps p404_count and p404_update; a new combination inserts a
row. One short-lived connection per call, like the rest of the stack pages.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pymysql

from turbostack.config import Settings

logger = logging.getLogger(__name__)

NO_REFERER = "NULL"


class StoreUnavailable(Exception):
    """Raised when the 404 table cannot be reached or written."""


@dataclass
class Page404Hit:
    """One row of the page404 table."""

    id: int
    request_uri: str
    http_referer: str
    ip: str
    count: int = 1
    created: int = 0
    updated: int = 0

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> "Page404Hit":
        return cls(
            id=row[0],
            request_uri=row[1],
            http_referer=row[2],
            ip=row[3],
            count=row[4],
            created=row[5],
            updated=row[6],
        )


class Page404Store:
    """MySQL-backed storage for 404 hits."""

    def __init__(
        self,
        settings: Settings,
        connect: Callable[[], Any] | None = None,
    ) -> None:
        self.settings = settings
        self.table = f"{settings.table_prefix}page404"
        self._connect_fn = connect
        self._schema_ready = False

    def _connect(self) -> Any:
        if self._connect_fn is not None:
            return self._connect_fn()
        s = self.settings
        return pymysql.connect(
            host=s.db_host,
            port=s.db_port,
            user=s.mysql_user,
            password=s.mysql_password,
            database=s.mysql_database,
            charset="utf8mb4",
            connect_timeout=s.db_timeout,
        )

    def _init_db(self, conn: Any) -> None:
        if self._schema_ready:
            return
        with conn.cursor() as cur:
            cur.execute(f"""
                CREATE TABLE IF NOT EXISTS `{self.table}` (
                    p404_id INT UNSIGNED NOT NULL AUTO_INCREMENT PRIMARY KEY,
                    p404_http_referer VARCHAR(2048) NOT NULL,
                    p404_request_uri VARCHAR(2048) NOT NULL,
                    p404_ip VARCHAR(45) NOT NULL,
                    p404_count INT UNSIGNED NOT NULL DEFAULT 1,
                    p404_create INT UNSIGNED NOT NULL,
                    p404_update INT UNSIGNED NOT NULL
                ) DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_general_ci
            """)
        self._schema_ready = True

    def record_hit(
        self,
        request_uri: str,
        http_referer: str | None,
        ip: str,
        now: int | None = None,
    ) -> int:
        """Count one hit and return the new p404_count."""
        referer = http_referer or NO_REFERER
        ts = int(now if now is not None else time.time())
        try:
            conn = self._connect()
        except (pymysql.err.MySQLError, OSError) as e:
            raise StoreUnavailable(f"Cannot connect to 404 store: {e}") from e

        try:
            self._init_db(conn)
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT p404_id, p404_count FROM `{self.table}` "
                    "WHERE p404_request_uri = %s AND p404_http_referer = %s AND p404_ip = %s "
                    "LIMIT 1",
                    (request_uri, referer, ip),
                )
                row = cur.fetchone()
                if row:
                    cur.execute(
                        f"UPDATE `{self.table}` SET p404_count = p404_count + 1, p404_update = %s "
                        "WHERE p404_id = %s",
                        (ts, row[0]),
                    )
                    count = row[1] + 1
                else:
                    cur.execute(
                        f"INSERT INTO `{self.table}` "
                        "(p404_http_referer, p404_request_uri, p404_create, p404_update, p404_ip, p404_count) "
                        "VALUES (%s, %s, %s, %s, %s, 1)",
                        (referer, request_uri, ts, ts, ip),
                    )
                    count = 1
            conn.commit()
            return count
        except (pymysql.err.MySQLError, OSError) as e:
            raise StoreUnavailable(f"404 store write failed: {e}") from e
        finally:
            conn.close()

    def recent(self, limit: int = 20) -> list[Page404Hit]:
        """Most recently seen missing pages."""
        try:
            conn = self._connect()
        except (pymysql.err.MySQLError, OSError) as e:
            raise StoreUnavailable(f"Cannot connect to 404 store: {e}") from e
        try:
            self._init_db(conn)
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT p404_id, p404_request_uri, p404_http_referer, p404_ip, "
                    f"p404_count, p404_create, p404_update FROM `{self.table}` "
                    "ORDER BY p404_update DESC LIMIT %s",
                    (limit,),
                )
                rows = cur.fetchall()
            return [Page404Hit.from_row(r) for r in rows]
        except (pymysql.err.MySQLError, OSError) as e:
            raise StoreUnavailable(f"404 store read failed: {e}") from e
        finally:
            conn.close()
