"""
Relational storage backend on SQLAlchemy.

Each transaction owns one session, tracked in a context variable so that
nested calls and the primitives made inside ``with storage.transaction()``
share it. Rows are converted to records before they leave this module.
"""
import copy
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import fields
from datetime import datetime, timezone
from typing import List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from jobwork.core.errors import Conflict, NotFound
from jobwork.core.logging import get_logger
from jobwork.db import models
from jobwork.storage import entities
from jobwork.storage.base import Storage

logger = get_logger(__name__)

T = TypeVar("T")

MODELS = {
    entities.User: models.UserModel,
    entities.Company: models.CompanyModel,
    entities.SupplierProfile: models.SupplierProfileModel,
    entities.SKU: models.SKUModel,
    entities.RFQ: models.RFQModel,
    entities.SupplierInvite: models.SupplierInviteModel,
    entities.Quote: models.QuoteModel,
    entities.CuratedOffer: models.CuratedOfferModel,
    entities.Order: models.OrderModel,
    entities.ProductionUpdate: models.ProductionUpdateModel,
    entities.Document: models.DocumentModel,
    entities.Notification: models.NotificationModel,
    entities.AuditLog: models.AuditLogModel,
}


def _to_record(row, kind: Type[T]) -> T:
    values = {}
    for f in fields(kind):
        value = getattr(row, f.name)
        # SQLite drops tzinfo on the way back
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        elif isinstance(value, (dict, list)):
            value = copy.deepcopy(value)
        values[f.name] = value
    return kind(**values)


class SqlStorage(Storage):
    """Entity store backed by a relational database."""

    backend_name = "sql"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._current: ContextVar[Optional[Session]] = ContextVar(
            f"jobwork_sql_session_{id(self)}", default=None
        )

    @contextmanager
    def transaction(self):
        if self._current.get() is not None:
            yield
            return

        session = self._session_factory()
        token = self._current.set(session)
        try:
            yield
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"Integrity error, transaction rolled back: {e.orig}")
            raise Conflict("Conflicting record already exists")
        except Exception:
            session.rollback()
            raise
        finally:
            self._current.reset(token)
            session.close()

    @contextmanager
    def _session(self):
        current = self._current.get()
        if current is not None:
            yield current
            return
        with self.transaction():
            yield self._current.get()

    def insert(self, entity: T) -> T:
        kind = type(entity)
        model = MODELS[kind]
        with self._session() as session:
            row = model(**{f.name: copy.deepcopy(getattr(entity, f.name)) for f in fields(kind)})
            session.add(row)
            session.flush()
            return _to_record(row, kind)

    def get(self, kind: Type[T], entity_id: str, lock: bool = False) -> Optional[T]:
        model = MODELS[kind]
        with self._session() as session:
            query = session.query(model).filter(model.id == entity_id)
            if lock:
                query = query.with_for_update()
            row = query.first()
            return _to_record(row, kind) if row is not None else None

    def find(self, kind: Type[T], order_by: Optional[str] = None,
             descending: bool = False, **criteria) -> List[T]:
        model = MODELS[kind]
        with self._session() as session:
            query = session.query(model)
            for key, expected in criteria.items():
                column = getattr(model, key)
                if isinstance(expected, (list, tuple, set)):
                    query = query.filter(column.in_(list(expected)))
                else:
                    query = query.filter(column == expected)
            if order_by:
                column = getattr(model, order_by)
                query = query.order_by(column.desc() if descending else column.asc())
            return [_to_record(row, kind) for row in query.all()]

    def save(self, entity: T) -> T:
        kind = type(entity)
        model = MODELS[kind]
        with self._session() as session:
            row = session.get(model, entity.id)
            if row is None:
                raise NotFound(kind.__name__)
            for f in fields(kind):
                if f.name != "id":
                    setattr(row, f.name, copy.deepcopy(getattr(entity, f.name)))
            session.flush()
            return _to_record(row, kind)

    def delete(self, kind: Type, entity_id: str) -> None:
        model = MODELS[kind]
        with self._session() as session:
            row = session.get(model, entity_id)
            if row is not None:
                session.delete(row)

    @property
    def engine(self):
        return self._session_factory.kw.get("bind")

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
