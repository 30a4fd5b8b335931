"""Database-backed state store."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .errors import StateIOError
from .models import SourceState, StateMapping
from .state import marker_from_dict, marker_to_dict

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class SourceStateModel(Base):
    """Seen marker for one source."""

    __tablename__ = "source_state"

    state_key = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    payload = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    engine = create_engine(connection_string)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)


class SqlStateStore:
    """State kept in an SQL table, one row per source."""

    def __init__(self, connection_string: str) -> None:
        try:
            engine = init_engine(connection_string)
        except SQLAlchemyError as exc:
            raise StateIOError(f"Cannot open state database: {exc}") from exc
        if engine is None:
            raise StateIOError("No database connection string configured")
        self.engine = engine
        self._session_factory = get_session_factory(engine)

    def load(self) -> StateMapping:
        mapping: StateMapping = {}
        try:
            with self._session_factory() as session:
                rows = session.execute(select(SourceStateModel)).scalars().all()
                for row in rows:
                    record = json.loads(row.payload)
                    if not isinstance(record, dict):
                        raise ValueError(
                            f"payload of '{row.state_key}' is not an object"
                        )
                    record["kind"] = row.kind
                    mapping[row.state_key] = SourceState(
                        row.name, marker_from_dict(record)
                    )
        except SQLAlchemyError as exc:
            raise StateIOError(f"Cannot read state database: {exc}") from exc
        except ValueError as exc:
            raise StateIOError(f"Invalid state row: {exc}") from exc

        logger.info("Loaded state for %d sources from database", len(mapping))
        return mapping

    def save(self, mapping: StateMapping) -> None:
        with self._session_factory() as session:
            try:
                existing = {
                    row.state_key: row
                    for row in session.execute(select(SourceStateModel)).scalars()
                }
                for key, state in mapping.items():
                    record = marker_to_dict(state.last_seen)
                    kind = record.pop("kind")
                    payload = json.dumps(record, ensure_ascii=False)
                    row = existing.get(key)
                    if row is None:
                        session.add(
                            SourceStateModel(
                                state_key=key,
                                name=state.source_name,
                                kind=kind,
                                payload=payload,
                            )
                        )
                    elif (
                        row.name != state.source_name
                        or row.kind != kind
                        or row.payload != payload
                    ):
                        row.name = state.source_name
                        row.kind = kind
                        row.payload = payload
                        row.updated_at = datetime.now(timezone.utc)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StateIOError(f"Cannot write state database: {exc}") from exc

        logger.info("Saved state for %d sources to database", len(mapping))
