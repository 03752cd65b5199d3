"""The ``app_users`` routine both database apps run after connecting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from ..logger import LogManager

logger = LogManager.get_logger(__name__)


@dataclass(frozen=True)
class UserTableSql:
    create_table: str
    count: str = "SELECT COUNT(*) FROM app_users"
    insert: str = "INSERT INTO app_users (name) VALUES (%s)"
    select_all: str = "SELECT id, name, created_at FROM app_users ORDER BY id"


def _format_created(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def run_user_table_demo(
    connection: Any,
    sql: UserTableSql,
    default_users: Sequence[str],
    driver_error: type[Exception],
) -> list[tuple[Any, ...]]:
    """
    Creates ``app_users``, seeds it when empty and logs every row.

    Connection must be in autocommit mode so that one failed insert does not
    poison the rest. Failed inserts are logged as warnings; every other driver
    error propagates.

    Returns:
        list[tuple]: the rows read back
    """
    with connection.cursor() as cursor:
        cursor.execute(sql.create_table)
        logger.info("Created/verified app_users table")

        cursor.execute(sql.count)
        (count,) = cursor.fetchone()

        if count == 0:
            logger.info("Table is empty, inserting default test users...")
            for name in default_users:
                try:
                    cursor.execute(sql.insert, (name,))
                except driver_error as exc:
                    logger.warning("Failed to insert default user %s: %s", name, exc)
                else:
                    logger.info("Inserted default user: %s", name)

        cursor.execute(sql.select_all)
        rows = list(cursor.fetchall())

    logger.info("Current users in database:")
    for user_id, name, created_at in rows:
        logger.info(
            "  - ID: %s, Name: %s, Created: %s",
            user_id,
            name,
            _format_created(created_at),
        )
    logger.info("Total users: %d", len(rows))
    return rows
