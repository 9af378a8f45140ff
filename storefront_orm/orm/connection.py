import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import URL
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront_orm.exceptions import EnvNotFoundError

logger = logging.getLogger("Storefront-ORM")

DEFAULT_DRIVER = "postgresql+psycopg"


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINTs work with pysqlite.

    Also turns on foreign key enforcement for every new connection.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


@dataclass
class DBConnection:
    """Database connection configuration."""

    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    database: str | None = None
    drivername: str = DEFAULT_DRIVER
    _engine: Engine | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def is_sqlite(self) -> bool:
        return self.drivername.startswith("sqlite")

    @property
    def url(self) -> URL:
        return URL.create(
            self.drivername,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    @property
    def db_url(self) -> str:
        """Construct the SQLAlchemy database URL."""
        return self.url.render_as_string(hide_password=False)

    def get_engine(self) -> Engine:
        """Return the engine for this configuration, creating it on first use.

        The engine is cached so an in-memory SQLite database is shared by the
        schema helpers and every session created from this connection.
        """
        if self._engine is not None:
            return self._engine

        if self.is_sqlite:
            kwargs = {"connect_args": {"check_same_thread": False}}
            if self.database in (None, ":memory:"):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(self.url, **kwargs)
            _enable_sqlite_savepoints(engine)
        else:
            engine = create_engine(self.url, pool_pre_ping=True)

        self._engine = engine
        return engine

    def get_session_factory(self) -> sessionmaker[Session]:
        """Create a SQLAlchemy session factory using the connection configuration."""
        return sessionmaker(bind=self.get_engine())

    def get_scoped_session_factory(self) -> scoped_session[Session]:
        """Create a thread-safe scoped SQLAlchemy session factory."""
        return scoped_session(self.get_session_factory())

    def create_schema(self) -> None:
        """Create every storefront table that does not exist yet."""
        from storefront_orm.orm.schema import Base

        Base.metadata.create_all(self.get_engine())
        logger.info(f"Created storefront schema on {self.url.render_as_string()}")

    def drop_schema(self) -> None:
        from storefront_orm.orm.schema import Base

        Base.metadata.drop_all(self.get_engine())
        logger.info(f"Dropped storefront schema on {self.url.render_as_string()}")

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    @classmethod
    def sqlite(cls, path: str | Path | None = None) -> "DBConnection":
        """SQLite connection; in-memory when ``path`` is None."""
        return cls(database=None if path is None else str(path), drivername="sqlite+pysqlite")

    @classmethod
    def from_config(cls, config_path: str | Path) -> "DBConnection":
        """Load database connection configuration from a YAML file.

        Args:
            config_path: The ``db.yaml`` file, or a directory containing it.
                ``POSTGRES_PASSWORD`` overrides the password in the file.

        Returns:
            DBConnection instance with loaded configuration.
        """
        from omegaconf import DictConfig, OmegaConf

        resolved_path = Path(config_path)
        if resolved_path.is_dir():
            resolved_path = resolved_path / "db.yaml"

        cfg = OmegaConf.load(resolved_path)
        if not isinstance(cfg, DictConfig):
            raise TypeError("db.yaml must be a YAML mapping.")  # noqa: TRY003

        drivername = cfg.get("driver", DEFAULT_DRIVER)
        if drivername.startswith("sqlite"):
            return cls(database=cfg.get("database"), drivername=drivername)

        password = os.environ.get("POSTGRES_PASSWORD", cfg.get("password"))
        if password is None:
            raise EnvNotFoundError("POSTGRES_PASSWORD")

        return cls(
            host=cfg.host,
            port=int(cfg.port),
            username=cfg.user,
            password=password,
            database=cfg.get("database"),
            drivername=drivername,
        )

    @classmethod
    def from_env(cls) -> "DBConnection":
        """Load database connection configuration from environment variables.

        ``DB_DRIVER`` selects the SQLAlchemy driver. SQLite drivers only read
        ``POSTGRES_DB`` as the database path.

        Raises:
            EnvNotFoundError: If the user or password variable is missing.
        """
        drivername = os.getenv("DB_DRIVER", DEFAULT_DRIVER)
        database = os.getenv("POSTGRES_DB", None)
        if drivername.startswith("sqlite"):
            return cls(database=database, drivername=drivername)

        host = os.getenv("POSTGRES_HOST", "localhost")
        port = int(os.getenv("POSTGRES_PORT", "5432"))
        username = os.getenv("POSTGRES_USER")
        password = os.getenv("POSTGRES_PASSWORD")
        if username is None:
            raise EnvNotFoundError("POSTGRES_USER")
        if password is None:
            raise EnvNotFoundError("POSTGRES_PASSWORD")

        return cls(
            host=host,
            port=port,
            username=username,
            password=password,
            database=database,
            drivername=drivername,
        )
