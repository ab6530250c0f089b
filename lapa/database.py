#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Database connection proxy.

This is not an ORM: it opens a DB-API connection on first use and offers two
conveniences, query() for reads and execute() for writes. Placeholders follow
the driver's paramstyle ("?" for sqlite, "%s" for mysql and pgsql).

sqlite uses the standard library. mysql needs PyMySQL (pip install lapa[mysql])
and pgsql needs psycopg (pip install lapa[pgsql]).
"""
import logging
import os
import sqlite3

from .errors import ConfigurationError

logger = logging.getLogger("lapa")

REQUIRED_PARAMS = ("host", "database", "username", "password")
DEFAULT_PORTS = {"mysql": 3306, "pgsql": 5432}
ALIASES = {"postgresql": "pgsql", "postgres": "pgsql", "mariadb": "mysql"}


class Database:
    def __init__(self, config, storage, debug=False):
        self.config = dict(config)
        self.storage = storage
        self.debug = debug
        self.kind = ALIASES.get(self.config.get("type", "mysql"), self.config.get("type", "mysql"))
        self._connection = None

    @property
    def connection(self):
        if self._connection is None:
            self._connection = self.connect()
        return self._connection

    def connect(self):
        try:
            if self.kind == "sqlite":
                connection = self._connect_sqlite()
            elif self.kind == "mysql":
                connection = self._connect_mysql()
            elif self.kind == "pgsql":
                connection = self._connect_pgsql()
            else:
                raise ConfigurationError(f"Unsupported database type: {self.kind}")
            cursor = connection.cursor()
            cursor.execute("SELECT 1")
            cursor.fetchone()
            cursor.close()
        except ConfigurationError:
            raise
        except Exception as ex:
            logger.error("Database connection error: %s", ex)
            if self.debug:
                raise ConfigurationError(f"Database connection failed: {ex}") from ex
            raise ConfigurationError("Database connection failed") from ex
        return connection

    def _check_params(self):
        for param in REQUIRED_PARAMS:
            if param not in self.config:
                raise ConfigurationError(f"Missing database parameter: {param}")

    def _connect_sqlite(self):
        path = self.config.get("database")
        if not path:
            path = os.path.join(self.storage.path("private"), "database.sqlite")
        if path != ":memory:" and not os.path.exists(path):
            open(path, "a").close()
            os.chmod(path, self.storage.permissions["private"])
        connection = sqlite3.connect(path)
        connection.row_factory = sqlite3.Row
        return connection

    def _connect_mysql(self):
        self._check_params()
        try:
            import pymysql
            import pymysql.cursors
        except ImportError:
            raise ConfigurationError(
                "MySQL support requires the 'PyMySQL' package. "
                "Install it with: pip install lapa[mysql]") from None
        return pymysql.connect(
            host=self.config["host"],
            port=int(self.config.get("port", DEFAULT_PORTS["mysql"])),
            user=self.config["username"],
            password=self.config["password"],
            database=self.config["database"],
            charset=self.config.get("charset", "utf8mb4"),
            cursorclass=pymysql.cursors.DictCursor,
        )

    def _connect_pgsql(self):
        self._check_params()
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError:
            raise ConfigurationError(
                "PostgreSQL support requires the 'psycopg' package. "
                "Install it with: pip install lapa[pgsql]") from None
        return psycopg.connect(
            host=self.config["host"],
            port=int(self.config.get("port", DEFAULT_PORTS["pgsql"])),
            user=self.config["username"],
            password=self.config["password"],
            dbname=self.config["database"],
            row_factory=dict_row,
        )

    def query(self, sql, params=()):
        """Run a SELECT and return the rows as a list of dicts."""
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, params)
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def execute(self, sql, params=()):
        """Run a write statement, commit and return the affected row count."""
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, params)
            self.connection.commit()
            return cursor.rowcount
        finally:
            cursor.close()

    def close(self):
        if self._connection is not None:
            self._connection.close()
            self._connection = None
