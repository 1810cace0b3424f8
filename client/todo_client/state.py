"""todo_client.state — Immutable todo-list state and its transitions.

Every transition is a pure function ``(state, ...) -> state`` that bumps
``version``. The store applies them under its lock; tests call them
directly.

List lifecycle: ``uninitialized`` -> ``loaded``; every later transition
keeps ``loaded``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional, Tuple

from todo_client.models import TodoItem

UNINITIALIZED = "uninitialized"
LOADED = "loaded"


@dataclass(frozen=True)
class TodoListState:
    status: str = UNINITIALIZED
    todos: Tuple[TodoItem, ...] = ()
    error: Optional[Exception] = None
    version: int = 0

    def find(self, todo_id: str) -> Optional[TodoItem]:
        for todo in self.todos:
            if todo.id == todo_id:
                return todo
        return None


def _next(state: TodoListState, **changes: Any) -> TodoListState:
    return replace(state, version=state.version + 1, **changes)


def load(state: TodoListState, todos: Tuple[TodoItem, ...]) -> TodoListState:
    return _next(state, status=LOADED, todos=tuple(todos), error=None)


def load_failed(state: TodoListState, error: Exception) -> TodoListState:
    return _next(state, todos=(), error=error)


def insert_created(state: TodoListState, todo: TodoItem) -> TodoListState:
    return _next(state, todos=(todo,) + state.todos, error=None)


def apply_delete(state: TodoListState, todo_id: str) -> TodoListState:
    return _next(state, todos=tuple(t for t in state.todos if t.id != todo_id))


def apply_toggle(state: TodoListState, todo_id: str) -> TodoListState:
    return _next(
        state,
        todos=tuple(replace(t, completed=not t.completed) if t.id == todo_id else t for t in state.todos),
    )


def commit_record(state: TodoListState, todo: TodoItem) -> TodoListState:
    """Replace the local record with the server's copy.

    A record no longer in the list (deleted meanwhile) stays gone.
    """
    return _next(state, todos=tuple(todo if t.id == todo.id else t for t in state.todos))


def rollback(
    state: TodoListState,
    snapshot: TodoListState,
    todo_id: str,
    applied_version: int,
    error: Exception,
) -> TodoListState:
    """Undo a failed optimistic mutation of ``todo_id``.

    ``snapshot`` is the state taken right before the optimistic apply and
    ``applied_version`` the version that apply produced. If nothing else
    happened since, the snapshot list comes back as is. Otherwise only the
    record itself is restored from the snapshot, at its old position, so
    other transitions made in the meantime survive.
    """
    if state.version == applied_version:
        return _next(state, todos=snapshot.todos, error=error)

    todos = [t for t in state.todos if t.id != todo_id]
    for index, original in enumerate(snapshot.todos):
        if original.id == todo_id:
            todos.insert(min(index, len(todos)), original)
            break
    return _next(state, todos=tuple(todos), error=error)


def fail(state: TodoListState, error: Exception) -> TodoListState:
    return _next(state, error=error)


def clear_error(state: TodoListState) -> TodoListState:
    return _next(state, error=None)
