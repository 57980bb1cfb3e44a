from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from ..config import DATABASE_URL
# Table modules register themselves on SQLModel.metadata when imported
from ..models import puzzle, guess, solve, give_up, user  # noqa: F401


def configure_sqlite(db_engine: Engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; emit it ourselves
    @event.listens_for(db_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(db_engine, "begin")
    def do_begin(conn):
        # IMMEDIATE takes the write lock up front so concurrent writers queue
        # on the busy timeout instead of deadlocking on a lock upgrade
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False, "timeout": 30})
        db_engine = create_engine(url, **kwargs)
        configure_sqlite(db_engine)
        return db_engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


# SQLAlchemy database engine
engine = create_db_engine(DATABASE_URL)


def create_db_and_tables(db_engine: Engine = None):
    SQLModel.metadata.create_all(db_engine or engine)


def get_session():
    with Session(engine) as session:
        yield session
