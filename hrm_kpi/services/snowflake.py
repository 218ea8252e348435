from __future__ import annotations

import snowflake.connector

from hrm_kpi.config import settings
from hrm_kpi.core.exceptions import DatabaseConnectionException


# MODULE-LEVEL CONNECTION (USED BY REPOSITORIES)


def get_snowflake_connection():
    """
    Snowflake connection factory.
    Used by repositories via BaseRepository.get_connection().
    """
    if not settings.snowflake_configured:
        raise DatabaseConnectionException(
            "Snowflake is not configured (set SNOWFLAKE_ACCOUNT, SNOWFLAKE_USER, SNOWFLAKE_PASSWORD)"
        )

    return snowflake.connector.connect(
        account=settings.SNOWFLAKE_ACCOUNT,
        user=settings.SNOWFLAKE_USER,
        password=settings.SNOWFLAKE_PASSWORD.get_secret_value(),
        warehouse=settings.SNOWFLAKE_WAREHOUSE,
        database=settings.SNOWFLAKE_DATABASE,
        schema=settings.SNOWFLAKE_SCHEMA,
        role=settings.SNOWFLAKE_ROLE,
        autocommit=True,
    )


def check_snowflake_connection() -> bool:
    """Round-trip SELECT 1; False on any connector error."""
    try:
        conn = get_snowflake_connection()
    except (DatabaseConnectionException, snowflake.connector.errors.Error):
        return False
    try:
        cur = conn.cursor()
        try:
            cur.execute("SELECT 1")
            return cur.fetchone() is not None
        finally:
            cur.close()
    except snowflake.connector.errors.Error:
        return False
    finally:
        conn.close()
