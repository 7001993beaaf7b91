from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from . import notifications  # noqa: F401  registers the change listeners
from .models import META_COUNTERS_DOCUMENT_ID, Meta
from .settings import DATABASE_URL

logger = logging.getLogger(__name__)


def make_engine(url: str = DATABASE_URL, *, echo: bool = False) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    new_engine = create_engine(
        url, connect_args={"check_same_thread": False}, echo=echo
    )

    # pysqlite defers BEGIN until the first write, so reads at the start of a
    # transaction would not share its snapshot. Take over transaction control
    # and emit BEGIN ourselves.
    @event.listens_for(new_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(new_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return new_engine


engine = make_engine()


def ensure_meta_document(bind: Engine) -> None:
    with Session(bind) as session:
        if session.get(Meta, META_COUNTERS_DOCUMENT_ID) is not None:
            return
        session.add(Meta(id=META_COUNTERS_DOCUMENT_ID))
        session.commit()
        logger.info("Created meta counters document")


def init_db(bind: Optional[Engine] = None) -> None:
    bind = bind if bind is not None else engine
    SQLModel.metadata.create_all(bind)
    ensure_meta_document(bind)
