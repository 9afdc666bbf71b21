from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import mysql.connector

from ..core.constants import FEEDER_POINTS, USERS, WORKERS
from .document_store import WriteOp

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "swachh_netra")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema files (handles ';' inside quotes, skips '--' comments).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    lines = [line for line in sql.splitlines() if not line.lstrip().startswith("--")]
    for ch in "\n".join(lines):
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
            buf.append(ch)
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            buf.append(ch)
            continue

        if ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path = SCHEMA_PATH) -> None:
    target = _as_target(db_config)
    ensure_database_exists(db_config)

    sql = _strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8"))

    conn = _connect(target)
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("Schema applied to %s", target.database)


DEMO_FEEDER_POINTS = {
    "fp-demo-1": {
        "feeder_point_name": "Gandhi Chowk",
        "area_name": "Gandhi Nagar",
        "ward_number": "12",
        "coordinates": {"latitude": 21.1458, "longitude": 79.0882},
        "assigned_worker_ids": ["wk-demo-1", "wk-demo-2"],
        "is_active": True,
    },
    "fp-demo-2": {
        "feeder_point_name": "Station Road Bin",
        "area_name": "Sitabuldi",
        "ward_number": "7",
        "coordinates": None,
        "assigned_worker_ids": [],
        "is_active": True,
    },
}

DEMO_WORKERS = {
    "wk-demo-1": {
        "full_name": "Rajesh Kumar",
        "role": "sweeper",
        "assigned_feeder_point_ids": ["fp-demo-1"],
        "assigned_driver_id": "drv-demo-1",
        "contractor_id": "ctr-demo-1",
        "is_active": True,
    },
    "wk-demo-2": {
        "full_name": "Priya Sharma",
        "role": "loader",
        "assigned_feeder_point_ids": ["fp-demo-1"],
        "assigned_driver_id": "drv-demo-1",
        "contractor_id": "ctr-demo-1",
        "is_active": True,
    },
}

DEMO_USERS = {
    "drv-demo-1": {"full_name": "Suresh Patil", "role": "driver", "contractor_id": "ctr-demo-1", "is_active": True},
}

DEMO_DOCUMENTS = ((FEEDER_POINTS, DEMO_FEEDER_POINTS), (WORKERS, DEMO_WORKERS), (USERS, DEMO_USERS))


def seed_demo_data(db_config: dict) -> None:
    """Insert demo feeder points and workers, leaving existing rows alone."""
    target = _as_target(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor()
        for collection, docs in DEMO_DOCUMENTS:
            for doc_id, body in docs.items():
                cur.execute(
                    "INSERT IGNORE INTO documents(collection, doc_id, body) VALUES(%s,%s,%s)",
                    (collection, doc_id, json.dumps(body)),
                )
        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    target = _as_target(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()


async def seed_store(store) -> int:
    """Write the demo documents through any DocumentStore; existing ids are skipped."""
    ops = []
    for collection, docs in DEMO_DOCUMENTS:
        for doc_id, body in docs.items():
            if await store.get(collection, doc_id) is None:
                ops.append(WriteOp(collection, doc_id, dict(body), create=True))
    if ops:
        await store.batch_write(ops)
    logger.info("Seeded %s demo document(s)", len(ops))
    return len(ops)
