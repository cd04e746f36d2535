"""MySQL connection settings, engine creation and the startup smoke query."""
import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Engine

from ...errors import ConfigError
from ...log import log_context
from ...secrets.domains.config_store import ConfigStore

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_DATABASE = "app"
DEFAULT_PORT = 3306
DEFAULT_USERNAME = "root"

CHARSET = "utf8mb4"
COLLATION = "utf8mb4_0900_ai_ci"

SMOKE_QUERY = "SELECT version() AS version"

# Baltimore CyberTrust Root, the trust anchor for the managed MySQL server.
# Override with DB_SSL_CA_PATH when the server's chain changes.
ROOT_CA_PEM = """\
-----BEGIN CERTIFICATE-----
MIIDdzCCAl+gAwIBAgIEAgAAuTANBgkqhkiG9w0BAQUFADBaMQswCQYDVQQGEwJJ
RTESMBAGA1UEChMJQmFsdGltb3JlMRMwEQYDVQQLEwpDeWJlclRydXN0MSIwIAYD
VQQDExlCYWx0aW1vcmUgQ3liZXJUcnVzdCBSb290MB4XDTAwMDUxMjE4NDYwMFoX
DTI1MDUxMjIzNTkwMFowWjELMAkGA1UEBhMCSUUxEjAQBgNVBAoTCUJhbHRpbW9y
ZTETMBEGA1UECxMKQ3liZXJUcnVzdDEiMCAGA1UEAxMZQmFsdGltb3JlIEN5YmVy
VHJ1c3QgUm9vdDCCASIwDQYJKoZIhvcNAQEBBQADggEPADCCAQoCggEBAKMEuyKr
mD1X6CZymrV51Cni4eiVgLGw41uOKymaZN+hXe2wCQVt2yguzmKiYv60iNoS6zjr
IZ3AQSsBUnuId9Mcj8e6uYi1agnnc+gRQKfRzMpijS3ljwumUNKoUMMo6vWrJYeK
mpYcqWe4PwzV9/lSEy/CG9VwcPCPwBLKBsua4dnKM3p31vjsufFoREJIE9LAwqSu
XmD+tqYF/LTdB1kC1FkYmGP1pWPgkAx9XbIGevOF6uvUA65ehD5f/xXtabz5OTZy
dc93Uk3zyZAsuT3lySNTPx8kmCFcB5kpvcY67Oduhjprl3RjM71oGDHweI12v/ye
jl0qhqdNkNwnGjkCAwEAAaNFMEMwHQYDVR0OBBYEFOWdWTCCR1jMrPoIVDaGezq1
BE3wMBIGA1UdEwEB/wQIMAYBAf8CAQMwDgYDVR0PAQH/BAQDAgEGMA0GCSqGSIb3
DQEBBQUAA4IBAQCFDF2O5G9RaEIFoN27TyclhAO992T9Ldcw46QQF+vaKSm2eT92
9hkTI7gQCvlYpNRhcL0EYWoSihfVCr3FvDB81ukMJY2GQE/szKN+OMY3EU/t3Wgx
jkzSswF07r51XgdIGn9w/xZchMB5hbgF/X++ZRGjD8ACtPhSNzkE1akxehi/oCr0
Epn3o0WC4zxe9Z2etciefC7IpJ5OCBRLbf1wbWsaY71k5h+3zvDyny67G7fyUIhz
ksLi4xaNmjICq44Y3ekQEe5+NauQrz4wlHrQMz2nZQ/1/I6eYs9HRCwBXbsdtTLS
R9I4LtD+gdwyah617jzV/OeBHRnDJELqYzmp
-----END CERTIFICATE-----
"""


@dataclass(frozen=True)
class DatabaseSettings:
    """Everything needed to open the MySQL connection pool."""
    host: str
    port: int
    database: str
    username: str
    password: Optional[str] = field(default=None, repr=False)
    charset: str = CHARSET
    collation: str = COLLATION
    ssl_ca: str = field(default=ROOT_CA_PEM, repr=False)
    sql_logging: bool = True

    @property
    def url(self) -> URL:
        return URL.create(
            "mysql+pymysql",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query={"charset": self.charset},
        )

    def connect_args(self) -> Dict[str, Any]:
        """PyMySQL connect() arguments: TLS pinned to ssl_ca plus the session collation."""
        return {
            "ssl": ssl.create_default_context(cadata=self.ssl_ca),
            "collation": self.collation,
        }

    def describe(self) -> Dict[str, Any]:
        """Settings as a log-safe dict (password masked, CA omitted)."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
            "password": "********" if self.password is not None else None,
            "charset": self.charset,
            "collation": self.collation,
            "sql_logging": self.sql_logging,
        }


def is_production(config: ConfigStore) -> bool:
    return config.get("APP_ENV") == "production"


def _read_ca(path: str) -> str:
    try:
        with open(path, 'r') as f:
            return f.read()
    except OSError as e:
        raise ConfigError(f"Failed to read CA certificate at {path}: {e}")


def build_database_settings(config: ConfigStore) -> DatabaseSettings:
    """
    Build connection settings from configuration, applying defaults.

    Raises:
        ConfigError: If DB_PORT is not an integer or DB_SSL_CA_PATH is unreadable
    """
    raw_port = config.get("DB_PORT", str(DEFAULT_PORT))
    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigError(f"DB_PORT must be an integer, got: {raw_port!r}")

    ca_path = config.get("DB_SSL_CA_PATH")

    return DatabaseSettings(
        host=config.get("DB_HOSTNAME", DEFAULT_HOST),
        port=port,
        database=config.get("DB_NAME", DEFAULT_DATABASE),
        username=config.get("DB_USERNAME", DEFAULT_USERNAME),
        password=config.get("DB_PASSWORD"),
        ssl_ca=_read_ca(ca_path) if ca_path else ROOT_CA_PEM,
        sql_logging=not (config.get("DISABLE_SQL_LOGGING") or is_production(config)),
    )


def attach_sql_logging(engine: Engine) -> None:
    """Log every statement the engine executes at debug level."""

    @event.listens_for(engine, "before_cursor_execute")
    def _log_statement(conn, cursor, statement, parameters, context, executemany):
        log_context(logger, logging.DEBUG, "SQL query", {"sql": statement})


def create_database_engine(settings: DatabaseSettings) -> Engine:
    """Create the pooled engine. No connection is opened until first use."""
    engine = create_engine(
        settings.url,
        connect_args=settings.connect_args(),
        pool_pre_ping=True,
    )
    if settings.sql_logging:
        attach_sql_logging(engine)
    return engine


def run_smoke_query(engine: Engine, query: str = SMOKE_QUERY) -> List[Dict[str, Any]]:
    """Run the connectivity check and return its rows as dicts."""
    with engine.connect() as conn:
        rows = conn.execute(text(query)).mappings().all()
    return [dict(row) for row in rows]
