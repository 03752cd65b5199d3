# -*- coding: utf-8 -*-
"""PostgreSQL app: creates and seeds ``app_users`` on the configured database."""

from __future__ import annotations

import asyncio
import sys

import psycopg2
from pydantic import ValidationError

from ..config import LogConfig, PostgresAppConfig
from ..errors import BranchTestkitError
from ..logger import LogManager
from .runtime import connect_with_retries, mask_password, wait_for_shutdown_signal
from .user_table import UserTableSql, run_user_table_demo

logger = LogManager.get_logger(__name__)

CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS app_users (
        id SERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""


def _connect(dsn: str) -> "psycopg2.extensions.connection":
    connection = psycopg2.connect(dsn)
    connection.autocommit = True
    return connection


def run(config: PostgresAppConfig) -> None:
    logger.info("Connecting to database: %s", mask_password(config.CONNECTION_URL))

    connection = connect_with_retries(
        lambda: _connect(config.CONNECTION_URL),
        (psycopg2.OperationalError,),
        retries=config.connect_retries,
        interval=config.retry_interval_sec,
    )
    try:
        logger.info("Connected to PostgreSQL database")
        run_user_table_demo(
            connection,
            UserTableSql(create_table=CREATE_TABLE),
            config.default_users,
            psycopg2.Error,
        )
        asyncio.run(wait_for_shutdown_signal())
    finally:
        connection.close()


def main() -> int:
    LogManager.configure(LogConfig())
    logger.info("Starting PostgreSQL app...")
    try:
        config = PostgresAppConfig()
    except ValidationError:
        logger.critical("DB_CONNECTION_URL environment variable is not set")
        return 1

    try:
        run(config)
    except BranchTestkitError as exc:
        logger.critical("%s", exc)
        return 1
    except psycopg2.Error as exc:
        logger.critical("Database error: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
