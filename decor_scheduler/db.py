# decor_scheduler/db.py
import os
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import event
from .settings import load_settings

_settings = load_settings()

# sqlite:////abs/path.db needs its directory to exist
if _settings.database_url.startswith("sqlite:////"):
    db_path = _settings.database_url.replace("sqlite:////", "/")
    os.makedirs(os.path.dirname(db_path), exist_ok=True)

engine = create_engine(_settings.database_url, echo=False)

if _settings.database_url.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _sqlite_foreign_keys(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

def init_db(bind=None):
    # tables are registered on SQLModel.metadata by importing the models
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)

def get_session():
    with Session(engine) as session:
        yield session
