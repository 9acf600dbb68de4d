"""Shared fixtures: an in-memory stand-in for a pymongo collection.

Only the calls MongoSessionStore makes are supported, with equality, ``$lt``
and ``$ne`` filters and ``$set`` / ``$setOnInsert`` updates.
"""

from __future__ import annotations

import copy
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest
from bson import ObjectId
from pymongo import ReturnDocument

from sessiondb.backends.session.mongodb import MongoSessionStore


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for field, condition in query.items():
        value = document.get(field)
        if isinstance(condition, dict):
            for op, operand in condition.items():
                if op == "$lt":
                    if value is None or not value < operand:
                        return False
                elif op == "$ne":
                    if value == operand:
                        return False
                else:
                    raise NotImplementedError(op)
        elif value != condition:
            return False
    return True


class FakeCollection:
    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.indexes: list[tuple[list[tuple[str, int]], bool]] = []

    def _find(self, query: dict[str, Any]) -> list[dict[str, Any]]:
        return [doc for doc in self.documents if _matches(doc, query)]

    def _insert_from(self, query: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
        document = {k: v for k, v in query.items() if not isinstance(v, dict)}
        document.update(update.get("$setOnInsert", {}))
        document.update(update.get("$set", {}))
        document.setdefault("_id", ObjectId())
        self.documents.append(document)
        return document

    def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        document = dict(document)
        document.setdefault("_id", ObjectId())
        self.documents.append(document)
        return SimpleNamespace(acknowledged=True, inserted_id=document["_id"])

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        found = self._find(query)
        return copy.deepcopy(found[0]) if found else None

    def find_one_and_update(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        return_document: bool = ReturnDocument.BEFORE,
    ) -> dict[str, Any] | None:
        found = self._find(query)
        if found:
            before = copy.deepcopy(found[0])
            found[0].update(update.get("$set", {}))
            return copy.deepcopy(found[0]) if return_document == ReturnDocument.AFTER else before
        if not upsert:
            return None
        document = self._insert_from(query, update)
        return copy.deepcopy(document) if return_document == ReturnDocument.AFTER else None

    def update_one(
        self, query: dict[str, Any], update: dict[str, Any], upsert: bool = False
    ) -> SimpleNamespace:
        found = self._find(query)
        if found:
            found[0].update(update.get("$set", {}))
            return SimpleNamespace(
                acknowledged=True, matched_count=1, modified_count=1, upserted_id=None
            )
        if upsert:
            document = self._insert_from(query, update)
            return SimpleNamespace(
                acknowledged=True, matched_count=0, modified_count=0, upserted_id=document["_id"]
            )
        return SimpleNamespace(acknowledged=True, matched_count=0, modified_count=0, upserted_id=None)

    def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        doomed = self._find(query)
        self.documents = [doc for doc in self.documents if doc not in doomed]
        return SimpleNamespace(acknowledged=True, deleted_count=len(doomed))

    def create_index(self, keys: list[tuple[str, int]], unique: bool = False) -> str:
        self.indexes.append((keys, unique))
        return "_".join(f"{name}_{direction}" for name, direction in keys)


class FakeClient:
    """``client[database][collection]`` returning FakeCollection instances."""

    def __init__(self) -> None:
        self.databases: dict[str, dict[str, FakeCollection]] = {}

    def __getitem__(self, database_name: str) -> dict[str, FakeCollection]:
        database = self.databases.setdefault(database_name, {})
        return _AutoCollections(database)


class _AutoCollections:
    def __init__(self, collections: dict[str, FakeCollection]) -> None:
        self._collections = collections

    def __getitem__(self, name: str) -> FakeCollection:
        return self._collections.setdefault(name, FakeCollection())


class Clock:
    """Settable clock for deterministic timestamps."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def store(client: FakeClient, clock: Clock) -> MongoSessionStore:
    return MongoSessionStore(
        client,
        database_name="app",
        collection_name="sessions",
        clock=clock,
    )


@pytest.fixture
def collection(store: MongoSessionStore) -> FakeCollection:
    return store.collection
