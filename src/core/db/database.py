"""PostgreSQL access: engine management and the transactional unit of work."""

import json
from collections.abc import Iterator
from contextlib import contextmanager

import boto3
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import Config
from core.errors import TripDeskError


class Database:
    """Owns the SQLAlchemy engine and hands out transaction-scoped sessions.

    Every mutation of ticket inventory or payment state goes through
    ``transaction()``: the block commits when it exits normally and rolls
    back on any exception, so a partially applied change is never visible.
    """

    def __init__(self, config: Config | None = None, url: str | URL | None = None) -> None:
        self._config = config
        self._url = url
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None
        self._secret_cache: dict[str, str] | None = None

    @classmethod
    def from_url(cls, url: str) -> "Database":
        db = cls(url=url)
        db.connect()
        return db

    def _get_credentials(self) -> dict[str, str]:
        assert self._config is not None
        if self._config.aurora_secret_arn:
            if self._secret_cache is None:
                client = boto3.client("secretsmanager", region_name=self._config.aws_region)
                secret = client.get_secret_value(SecretId=self._config.aurora_secret_arn)
                self._secret_cache = json.loads(secret["SecretString"])
            return self._secret_cache
        return {
            "host": self._config.aurora_host,
            "port": str(self._config.aurora_port),
            "dbname": self._config.aurora_database,
            "user": self._config.aurora_user,
            "password": self._config.aurora_password,
        }

    def resolve_url(self) -> str | URL:
        if self._url is not None:
            return self._url
        if self._config is None:
            raise TripDeskError("Database needs either a config or a URL.")
        if self._config.database_url:
            return self._config.database_url

        creds = self._get_credentials()
        return URL.create(
            "postgresql+psycopg",
            username=creds.get("username", creds.get("user", self._config.aurora_user)),
            password=creds.get("password", self._config.aurora_password),
            host=creds.get("host", self._config.aurora_host),
            port=int(creds.get("port", self._config.aurora_port)),
            database=creds.get("dbname", self._config.aurora_database),
        )

    def connect(self) -> None:
        url = self.resolve_url()
        if str(url).startswith("sqlite") and ":memory:" in str(url):
            # Single shared connection so every session sees the same in-memory database
            self._engine = create_engine(
                url, poolclass=StaticPool, connect_args={"check_same_thread": False}
            )
        else:
            self._engine = create_engine(url, pool_pre_ping=True)
        self._sessionmaker = sessionmaker(bind=self._engine, expire_on_commit=False)

    def disconnect(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise TripDeskError("Database is not connected. Call connect() first.")
        return self._engine

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose work is committed on success and rolled back on error."""
        if self._sessionmaker is None:
            raise TripDeskError("Database is not connected. Call connect() first.")
        with self._sessionmaker.begin() as session:
            yield session

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.disconnect()
