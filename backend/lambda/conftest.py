"""Shared pytest fixtures for the todo Lambda tests.

``FakeDynamoClient`` mimics the subset of the low-level DynamoDB client the
repository uses (put/get/query/delete on a ``userId``/``todoId`` keyed
table). ``scan`` is deliberately an error: owner reads must be queries.
"""

from __future__ import annotations

import copy
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "shared_layer", "python"))

from todo_shared.repository import DynamoTodoRepository  # noqa: E402


class FakeDynamoClient:
    def __init__(self, page_size: Optional[int] = None) -> None:
        self.tables: Dict[str, Dict[Tuple[str, str], Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_with: Optional[Exception] = None
        self.page_size = page_size

    def _table(self, name: str) -> Dict[Tuple[str, str], Dict[str, Any]]:
        return self.tables.setdefault(name, {})

    def _record(self, operation: str, kwargs: Dict[str, Any]) -> None:
        self.calls.append((operation, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _key(raw: Dict[str, Any]) -> Tuple[str, str]:
        return raw["userId"]["S"], raw["todoId"]["S"]

    def put_item(self, **kwargs: Any) -> Dict[str, Any]:
        self._record("put_item", kwargs)
        item = kwargs["Item"]
        self._table(kwargs["TableName"])[self._key(item)] = copy.deepcopy(item)
        return {}

    def get_item(self, **kwargs: Any) -> Dict[str, Any]:
        self._record("get_item", kwargs)
        item = self._table(kwargs["TableName"]).get(self._key(kwargs["Key"]))
        return {"Item": copy.deepcopy(item)} if item else {}

    def query(self, **kwargs: Any) -> Dict[str, Any]:
        self._record("query", kwargs)
        names = kwargs.get("ExpressionAttributeNames") or {}
        values = kwargs["ExpressionAttributeValues"]
        assert list(names.values()) == ["userId"], "query must be bounded by the owner partition key"
        owner = next(iter(values.values()))["S"]

        rows = sorted(
            (key, item) for key, item in self._table(kwargs["TableName"]).items() if key[0] == owner
        )
        start = kwargs.get("ExclusiveStartKey")
        if start:
            start_key = self._key(start)
            rows = [(key, item) for key, item in rows if key > start_key]

        page = rows if self.page_size is None else rows[: self.page_size]
        resp: Dict[str, Any] = {"Items": [copy.deepcopy(item) for _, item in page]}
        if len(page) < len(rows):
            last = page[-1][1]
            resp["LastEvaluatedKey"] = {"userId": last["userId"], "todoId": last["todoId"]}
        return resp

    def delete_item(self, **kwargs: Any) -> Dict[str, Any]:
        self._record("delete_item", kwargs)
        self._table(kwargs["TableName"]).pop(self._key(kwargs["Key"]), None)
        return {}

    def scan(self, **kwargs: Any) -> Dict[str, Any]:
        raise AssertionError("owner reads must not scan the table")

    def operations(self) -> List[str]:
        return [operation for operation, _ in self.calls]


@pytest.fixture
def fake_ddb() -> FakeDynamoClient:
    return FakeDynamoClient()


@pytest.fixture
def repo(fake_ddb: FakeDynamoClient) -> DynamoTodoRepository:
    return DynamoTodoRepository("todos-test", client=fake_ddb)
