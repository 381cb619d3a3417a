"""Document collections backing the card store.

A collection holds schemaless documents (plain dicts) keyed by a generated
identifier. The store assigns ``createdAt`` when a document is added, the
way a hosted document database stamps a server timestamp.
"""
import json
import logging
import pathlib
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import pandas as pd
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from .errors import NotFoundError, StoreUnavailableError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentCollection(ABC):
    """Minimal document collection interface used by the card service."""

    @abstractmethod
    def add(self, data: Dict) -> str:
        """Insert a document, stamping ``createdAt``. Returns the new id."""

    @abstractmethod
    def get(self, doc_id: str) -> Optional[Dict]:
        """Return the document with its ``id``, or None if absent."""

    @abstractmethod
    def update(self, doc_id: str, fields: Dict) -> None:
        """Set ``fields`` on a document; a None value removes the field."""

    @abstractmethod
    def delete(self, doc_id: str) -> None:
        """Remove a document."""

    @abstractmethod
    def query(self, field: str, value, order_by: str = "createdAt", descending: bool = True) -> List[Dict]:
        """Return documents where ``field == value`` sorted by ``order_by``."""


# --- CSV (pandas) ---

def _encode_default(value):
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def _decode_hook(obj: dict):
    if set(obj) == {"$date"}:
        return datetime.fromisoformat(obj["$date"])
    return obj


def encode_cell(value) -> str:
    if value is None:
        return ""
    return json.dumps(value, default=_encode_default, ensure_ascii=False)


def decode_cell(cell: str):
    if cell == "":
        return None
    return json.loads(cell, object_hook=_decode_hook)


class CsvCollection(DocumentCollection):
    """
    Stores documents in a CSV file through a pandas DataFrame.

    Every cell holds the JSON encoding of a field value and an empty cell
    means the field is absent, so values round-trip without pandas type
    inference. The file is rewritten after each write; if that fails the
    in-memory frame is restored and StoreUnavailableError is raised.
    """

    def __init__(self, file_path: str = "flashcards.csv", clock: Callable[[], datetime] = utcnow):
        self.file_path = pathlib.Path(file_path)
        self.clock = clock
        self.df: Optional[pd.DataFrame] = None
        self._lock = threading.Lock()

    def load_data(self) -> pd.DataFrame:
        """Loads data from CSV, starting empty when the file does not exist yet."""
        if self.df is not None:
            return self.df
        if not self.file_path.exists():
            logging.info(f"No card file at {self.file_path}, starting empty")
            self.df = pd.DataFrame({"id": pd.Series(dtype=str)})
            return self.df
        try:
            self.df = pd.read_csv(self.file_path, encoding="utf-8-sig", dtype=str, keep_default_na=False)
        except (OSError, ValueError) as e:
            logging.error(f"Error loading CSV {self.file_path}: {e}")
            raise StoreUnavailableError(f"Could not read {self.file_path}") from e
        if "id" not in self.df.columns:
            raise StoreUnavailableError(f"{self.file_path} has no id column")
        logging.info(f"Loaded {len(self.df)} documents from {self.file_path}")
        return self.df

    def save_data(self):
        """Saves DataFrame to CSV."""
        self.df.to_csv(self.file_path, index=False, encoding="utf-8-sig")

    def _commit(self, previous: pd.DataFrame):
        try:
            self.save_data()
        except OSError as e:
            self.df = previous
            logging.error(f"Error saving CSV {self.file_path}: {e}")
            raise StoreUnavailableError(f"Could not write {self.file_path}") from e

    def _row_index(self, doc_id: str):
        matches = self.df.index[self.df["id"] == doc_id].tolist()
        return matches[0] if matches else None

    def _row_to_doc(self, row: dict) -> Dict:
        doc = {"id": row["id"]}
        for k, v in row.items():
            if k == "id":
                continue
            value = decode_cell(v)
            if value is not None:
                doc[k] = value
        return doc

    def _ensure_column(self, column: str):
        if column not in self.df.columns:
            self.df[column] = ""

    def add(self, data: Dict) -> str:
        with self._lock:
            self.load_data()
            doc_id = uuid.uuid4().hex
            doc = dict(data, createdAt=self.clock())
            row = {"id": doc_id}
            row.update({k: encode_cell(v) for k, v in doc.items()})
            previous = self.df
            frame = pd.DataFrame([row], dtype=str)
            self.df = pd.concat([self.df, frame], ignore_index=True).fillna("")
            self._commit(previous)
            return doc_id

    def get(self, doc_id: str) -> Optional[Dict]:
        with self._lock:
            self.load_data()
            idx = self._row_index(doc_id)
            if idx is None:
                return None
            return self._row_to_doc(self.df.loc[idx].to_dict())

    def update(self, doc_id: str, fields: Dict) -> None:
        with self._lock:
            self.load_data()
            idx = self._row_index(doc_id)
            if idx is None:
                raise NotFoundError(f"Document {doc_id} not found")
            previous = self.df
            self.df = self.df.copy()
            for k, v in fields.items():
                if k == "id":
                    continue
                self._ensure_column(k)
                self.df.at[idx, k] = encode_cell(v)
            self._commit(previous)

    def delete(self, doc_id: str) -> None:
        with self._lock:
            self.load_data()
            idx = self._row_index(doc_id)
            if idx is None:
                raise NotFoundError(f"Document {doc_id} not found")
            previous = self.df
            self.df = self.df.drop(index=idx).reset_index(drop=True)
            self._commit(previous)

    def query(self, field: str, value, order_by: str = "createdAt", descending: bool = True) -> List[Dict]:
        with self._lock:
            self.load_data()
            if field not in self.df.columns:
                return []
            matches = self.df[self.df[field] == encode_cell(value)]
            docs = [self._row_to_doc(row) for row in matches.to_dict(orient="records")]
        # Documents missing the sort field go last
        present = [d for d in docs if order_by in d]
        missing = [d for d in docs if order_by not in d]
        present.sort(key=lambda d: d[order_by], reverse=descending)
        return present + missing


# --- MongoDB ---

class MongoCollection(DocumentCollection):
    """Document collection backed by a MongoDB collection."""

    def __init__(self, collection, clock: Callable[[], datetime] = utcnow):
        self.collection = collection
        self.clock = clock

    @classmethod
    def connect(cls, uri: str, database: str, name: str = "flashcards") -> "MongoCollection":
        client = MongoClient(uri, tz_aware=True, serverSelectionTimeoutMS=5000)
        return cls(client[database][name])

    @staticmethod
    def _object_id(doc_id: str) -> ObjectId:
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            raise NotFoundError(f"Document {doc_id} not found") from None

    @staticmethod
    def _from_mongo(doc: Dict) -> Dict:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def add(self, data: Dict) -> str:
        doc = dict(data, createdAt=self.clock())
        doc.pop("id", None)
        try:
            result = self.collection.insert_one(doc)
        except PyMongoError as e:
            logging.error(f"Error adding document: {e}")
            raise StoreUnavailableError("Failed to add document") from e
        return str(result.inserted_id)

    def get(self, doc_id: str) -> Optional[Dict]:
        try:
            oid = self._object_id(doc_id)
        except NotFoundError:
            return None
        try:
            doc = self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            logging.error(f"Error getting document {doc_id}: {e}")
            raise StoreUnavailableError("Failed to fetch document") from e
        return self._from_mongo(doc) if doc else None

    def update(self, doc_id: str, fields: Dict) -> None:
        oid = self._object_id(doc_id)
        to_set = {k: v for k, v in fields.items() if v is not None and k != "id"}
        to_unset = {k: "" for k, v in fields.items() if v is None and k != "id"}
        ops = {}
        if to_set:
            ops["$set"] = to_set
        if to_unset:
            ops["$unset"] = to_unset
        if not ops:
            return
        try:
            result = self.collection.update_one({"_id": oid}, ops)
        except PyMongoError as e:
            logging.error(f"Error updating document {doc_id}: {e}")
            raise StoreUnavailableError("Failed to update document") from e
        if result.matched_count == 0:
            raise NotFoundError(f"Document {doc_id} not found")

    def delete(self, doc_id: str) -> None:
        oid = self._object_id(doc_id)
        try:
            result = self.collection.delete_one({"_id": oid})
        except PyMongoError as e:
            logging.error(f"Error deleting document {doc_id}: {e}")
            raise StoreUnavailableError("Failed to delete document") from e
        if result.deleted_count == 0:
            raise NotFoundError(f"Document {doc_id} not found")

    def query(self, field: str, value, order_by: str = "createdAt", descending: bool = True) -> List[Dict]:
        direction = DESCENDING if descending else 1
        try:
            cursor = self.collection.find({field: value}).sort(order_by, direction)
            return [self._from_mongo(doc) for doc in cursor]
        except PyMongoError as e:
            logging.error(f"Error querying documents by {field}: {e}")
            raise StoreUnavailableError("Failed to fetch documents") from e
