from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings


def make_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # FastAPI atiende requests síncronos en un threadpool
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, connect_args=connect_args)
    configure_sqlite(engine)
    return engine


def _unicode_lower(value):
    return value.lower() if value is not None else None


def configure_sqlite(engine: Engine) -> None:
    """Per-connection SQLite setup: foreign keys on, Unicode-aware lower()."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # el lower() nativo de SQLite solo pasa a minúsculas ASCII ("Ó" queda igual)
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


engine = make_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        # entrega la sesion de la db al endpoint que lo necesite
        yield db
    finally:
        db.close()
