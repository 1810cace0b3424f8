"""todo_client.store — Synchronization store for one user's todo list.

The store is created by the composition root (the CLI) and handed to
whatever renders the list. Readers only ever see whole ``TodoListState``
values: each transition is computed and swapped in under one lock.

Delete and toggle are optimistic. The local change is visible before the
request is sent; success commits the server's copy (toggle) or does
nothing more (delete); failure rolls back to the pre-mutation snapshot and
sets ``state.error``. Create and update wait for the server.

Mutations of the same record are serialized: a second delete/toggle/update
of an id waits until the first one has committed or rolled back. Mutations
of different records do not wait for each other. A record's lock is dropped
once no mutation holds or waits on it.

Any exception from the service rolls an optimistic change back. Client
errors are then reported through ``state.error``; anything else is
re-raised after the rollback.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from todo_client import state as transitions
from todo_client.errors import ApiError, ClientValidationError
from todo_client.models import TodoItem
from todo_client.service import TodoApplicationService
from todo_client.state import TodoListState

logger = logging.getLogger(__name__)

Listener = Callable[[TodoListState], None]

_CLIENT_ERRORS = (ApiError, ClientValidationError)


class _RecordLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class TodoStore:
    def __init__(self, service: TodoApplicationService, initial: Optional[TodoListState] = None) -> None:
        self.service = service
        self._state = initial or TodoListState()
        self._lock = threading.RLock()
        self._record_locks: Dict[str, _RecordLock] = {}
        self._record_locks_guard = threading.Lock()
        self._listeners: List[Listener] = []

    # -- state access ---------------------------------------------------

    @property
    def state(self) -> TodoListState:
        with self._lock:
            return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every transition. Returns an unsubscribe."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _swap(self, fn: Callable[..., TodoListState], *args: Any):
        with self._lock:
            previous = self._state
            self._state = fn(previous, *args)
            new_state = self._state
            listeners = list(self._listeners)
        for listener in listeners:
            listener(new_state)
        return previous, new_state

    def _transition(self, fn: Callable[..., TodoListState], *args: Any) -> TodoListState:
        return self._swap(fn, *args)[1]

    def _apply_optimistic(self, fn: Callable[..., TodoListState], todo_id: str):
        """Apply ``fn`` and return (pre-mutation snapshot, applied version)."""
        snapshot, applied = self._swap(fn, todo_id)
        return snapshot, applied.version

    @contextmanager
    def _serialized(self, todo_id: str) -> Iterator[None]:
        with self._record_locks_guard:
            entry = self._record_locks.get(todo_id)
            if entry is None:
                entry = self._record_locks[todo_id] = _RecordLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._record_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._record_locks[todo_id]

    def _roll_back(self, snapshot: TodoListState, todo_id: str, applied_version: int, exc: Exception) -> None:
        self._transition(transitions.rollback, snapshot, todo_id, applied_version, exc)
        if not isinstance(exc, _CLIENT_ERRORS):
            raise exc

    def clear_error(self) -> None:
        self._transition(transitions.clear_error)

    # -- operations -----------------------------------------------------

    def fetch_todos(self) -> bool:
        try:
            todos = self.service.get_my_todos()
        except _CLIENT_ERRORS as exc:
            logger.warning("Fetching todos failed: %s", exc)
            self._transition(transitions.load_failed, exc)
            return False
        self._transition(transitions.load, tuple(todos))
        return True

    def add_todo(self, title: str, description: Optional[str] = None) -> Optional[TodoItem]:
        try:
            todo = self.service.create_todo(title, description)
        except _CLIENT_ERRORS as exc:
            self._transition(transitions.fail, exc)
            return None
        self._transition(transitions.insert_created, todo)
        return todo

    def update_todo(self, todo_id: str, changes: Dict[str, Any]) -> Optional[TodoItem]:
        with self._serialized(todo_id):
            try:
                todo = self.service.update_todo(todo_id, changes)
            except _CLIENT_ERRORS as exc:
                self._transition(transitions.fail, exc)
                return None
            self._transition(transitions.commit_record, todo)
            return todo

    def delete_todo(self, todo_id: str) -> bool:
        with self._serialized(todo_id):
            snapshot, applied_version = self._apply_optimistic(transitions.apply_delete, todo_id)
            try:
                self.service.delete_todo(todo_id)
            except Exception as exc:
                logger.warning("Deleting todo %s failed, rolling back: %s", todo_id, exc)
                self._roll_back(snapshot, todo_id, applied_version, exc)
                return False
            return True

    def toggle_todo(self, todo_id: str) -> Optional[TodoItem]:
        with self._serialized(todo_id):
            current = self.state.find(todo_id)
            if current is None:
                self._transition(transitions.fail, ClientValidationError(f"Todo {todo_id} is not in the list"))
                return None

            snapshot, applied_version = self._apply_optimistic(transitions.apply_toggle, todo_id)
            try:
                todo = self.service.toggle_completion(todo_id, current.completed)
            except Exception as exc:
                logger.warning("Toggling todo %s failed, rolling back: %s", todo_id, exc)
                self._roll_back(snapshot, todo_id, applied_version, exc)
                return None
            self._transition(transitions.commit_record, todo)
            return todo
