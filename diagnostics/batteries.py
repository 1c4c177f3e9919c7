"""Built-in probe batteries.

Each battery is an ordered tuple; lock related probes come first so that the
snapshot of waiting transactions is taken before heavier statements run.
"""
from __future__ import annotations

from typing import Dict, Tuple

from core.config_models import ConfigurationError
from core.probes import Probe

INNODB_BATTERY: Tuple[Probe, ...] = (
    Probe("lock_waits", "SELECT * FROM information_schema.INNODB_LOCK_WAITS", "Transactions waiting on a lock"),
    Probe("locks", "SELECT * FROM information_schema.INNODB_LOCKS", "Locks currently held"),
    Probe("transactions", "SELECT * FROM information_schema.INNODB_TRX", "Transactions holding locks"),
    Probe("table_lock_variables", "SHOW VARIABLES LIKE 'innodb_table_lock%'", "InnoDB table lock variables"),
    Probe("deadlock_variables", "SHOW VARIABLES LIKE 'innodb_deadlock%'", "Deadlock detection variables"),
    Probe("lock_variables", "SHOW VARIABLES LIKE 'innodb_lock%'", "InnoDB lock variables"),
    Probe(
        "metadata_locks",
        "SELECT ID, USER, HOST, DB, COMMAND, TIME, STATE, INFO "
        "FROM information_schema.PROCESSLIST "
        "WHERE PROCESSLIST.STATE LIKE '%metadata lock%' "
        "ORDER BY TIME DESC",
        "Processes waiting on metadata locks",
    ),
    # TABLE_ROWS is an estimate; DATA_LENGTH and INDEX_LENGTH are bytes.
    Probe(
        "largest_tables",
        "SELECT TABLE_NAME, TABLE_ROWS, AVG_ROW_LENGTH, DATA_LENGTH, INDEX_LENGTH "
        "FROM information_schema.TABLES "
        "WHERE TABLE_SCHEMA = DATABASE() "
        "ORDER BY DATA_LENGTH DESC "
        "LIMIT 10",
        "Top 10 tables by data size",
    ),
    Probe("slow_query_settings", "SHOW VARIABLES LIKE '%slow_query%'", "Slow query log settings"),
    Probe("query_cache", "SHOW STATUS LIKE '%Qcache%'", "Query cache status"),
    Probe("connections", "SHOW STATUS LIKE '%connection%'", "Connection status"),
    Probe("threads", "SHOW STATUS LIKE '%thread%'", "Thread status"),
    Probe("temporary_tables", "SHOW STATUS LIKE '%tmp%'", "Temporary table usage"),
    Probe("buffer_pool", "SHOW STATUS LIKE '%buffer pool%'", "Buffer pool status"),
    Probe("table_locks", "SHOW STATUS LIKE '%table_locks%'", "Table lock status"),
    Probe("open_files_limit", "SHOW VARIABLES LIKE '%open_files_limit%'", "Maximum open files"),
    Probe("open_files", "SHOW STATUS LIKE '%open_files%'", "Currently open files"),
    Probe("engine_status", "SHOW ENGINE INNODB STATUS", "InnoDB engine status"),
    Probe(
        "running_queries",
        "SELECT ID, USER, HOST, DB, COMMAND, TIME, STATE, INFO "
        "FROM information_schema.PROCESSLIST "
        "WHERE COMMAND != 'Sleep' "
        "ORDER BY TIME DESC",
        "Currently running queries",
    ),
)

SQLITE_BATTERY: Tuple[Probe, ...] = (
    Probe("integrity_check", "PRAGMA quick_check", "Database integrity check"),
    Probe("page_count", "PRAGMA page_count", "Total pages"),
    Probe("freelist_count", "PRAGMA freelist_count", "Unused pages"),
    Probe("journal_mode", "PRAGMA journal_mode", "Journal mode"),
    Probe(
        "tables",
        "SELECT name, type FROM sqlite_master WHERE type IN ('table', 'index') ORDER BY name",
        "Table and index inventory",
    ),
)

_BATTERIES: Dict[str, Tuple[Probe, ...]] = {
    "innodb": INNODB_BATTERY,
    "sqlite": SQLITE_BATTERY,
}


def get_battery(name: str) -> Tuple[Probe, ...]:
    """Return the built-in battery registered under ``name``."""

    try:
        return _BATTERIES[name.lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown probe battery: {name}") from None


__all__ = ["INNODB_BATTERY", "SQLITE_BATTERY", "get_battery"]
