"""Document-style record storage on top of the ``documents`` table.

Every record lives in a named collection as a JSON blob. Equality filters,
counts, ordering and paging are pushed into SQL through JSON element
comparisons. Date ranges are checked in Python because stored dates mix plain
days and full timestamps.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from .errors import DependencyError
from .models import Document, new_id
from .services.dates import as_datetime, utcnow

logger = logging.getLogger(__name__)

RESERVED_FIELDS = ("id", "createdAt", "updatedAt")
COLUMN_FIELDS = {
    "id": Document.id,
    "createdAt": Document.created_at,
    "updatedAt": Document.updated_at,
}


@dataclass
class Page:
    items: List[dict]
    total_count: int


def _field_clause(field: str, expected):
    if field in COLUMN_FIELDS:
        return COLUMN_FIELDS[field] == expected
    element = Document.data[field]
    # bool before int: True is an int too
    if isinstance(expected, bool):
        return element.as_boolean() == expected
    if isinstance(expected, (int, float)):
        return element.as_float() == expected
    return element.as_string() == expected


def _sort_column(field: str):
    if field in COLUMN_FIELDS:
        return COLUMN_FIELDS[field]
    return Document.data[field].as_string()


def _lower_bound(value) -> Optional[datetime]:
    return as_datetime(value)


def _upper_bound(value) -> Optional[datetime]:
    # A bare day includes everything recorded on that day.
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max)
    if isinstance(value, str) and len(value) == 10:
        parsed = as_datetime(value)
        return datetime.combine(parsed.date(), time.max) if parsed else None
    return as_datetime(value)


def _clean(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in jsonable_encoder(doc).items() if k not in RESERVED_FIELDS}


class DocumentStore:
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def serialize(row: Document) -> dict:
        doc = dict(row.data or {})
        doc["id"] = row.id
        doc["createdAt"] = row.created_at.isoformat() if row.created_at else None
        doc["updatedAt"] = row.updated_at.isoformat() if row.updated_at else None
        return doc

    def _fail(self, action: str, collection: str, exc: SQLAlchemyError):
        self.db.rollback()
        logger.error("Store %s on %s failed: %s", action, collection, exc)
        raise DependencyError(f"Failed to {action} {collection}") from exc

    def _row(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            return self.db.get(Document, (collection, doc_id))
        except SQLAlchemyError as exc:
            self._fail("read", collection, exc)

    def _query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> Query:
        query = self.db.query(Document).filter(Document.collection == collection)
        for field, expected in (filters or {}).items():
            if expected is None:
                continue
            query = query.filter(_field_clause(field, jsonable_encoder(expected)))
        return query

    def _fetch(self, collection: str, query: Query) -> List[dict]:
        try:
            rows = query.all()
        except SQLAlchemyError as exc:
            self._fail("read", collection, exc)
        return [self.serialize(row) for row in rows]

    def create(self, collection: str, doc: Dict[str, Any], doc_id: Optional[str] = None) -> dict:
        now = utcnow()
        row = Document(
            collection=collection,
            id=doc_id or new_id(),
            data=_clean(doc),
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("create", collection, exc)
        return self.serialize(row)

    def get_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        row = self._row(collection, doc_id)
        return self.serialize(row) if row else None

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> Optional[dict]:
        row = self._row(collection, doc_id)
        if row is None:
            return None
        merged = dict(row.data or {})
        merged.update(_clean(partial))
        # Reassign so the JSON column is flagged dirty.
        row.data = merged
        row.updated_at = utcnow()
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("update", collection, exc)
        return self.serialize(row)

    def delete(self, collection: str, doc_id: str) -> bool:
        row = self._row(collection, doc_id)
        if row is None:
            return False
        try:
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("delete", collection, exc)
        return True

    def list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[dict]:
        query = self._query(collection, filters).order_by(Document.created_at, Document.id)
        return self._fetch(collection, query)

    def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[dict]:
        query = self._query(collection, filters).order_by(Document.created_at, Document.id).limit(1)
        docs = self._fetch(collection, query)
        return docs[0] if docs else None

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            return self._query(collection, filters).count()
        except SQLAlchemyError as exc:
            self._fail("read", collection, exc)

    def range_query(
        self,
        collection: str,
        field: str,
        lower=None,
        upper=None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[dict]:
        start = _lower_bound(lower)
        end = _upper_bound(upper)
        results = []
        for doc in self.list(collection, filters):
            value = as_datetime(doc.get(field))
            if value is None:
                continue
            if start is not None and value < start:
                continue
            if end is not None and value > end:
                continue
            results.append(doc)
        return results

    def paginate(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        page_size: int = 10,
        sort_field: str = "createdAt",
        direction: str = "desc",
    ) -> Page:
        column = _sort_column(sort_field)
        order = column.desc().nulls_last() if direction == "desc" else column.asc().nulls_first()
        offset = (max(page, 1) - 1) * page_size
        total = self.count(collection, filters)
        query = (
            self._query(collection, filters)
            .order_by(order, Document.created_at, Document.id)
            .offset(offset)
            .limit(page_size)
        )
        return Page(items=self._fetch(collection, query), total_count=total)
