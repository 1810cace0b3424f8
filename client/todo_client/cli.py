#!/usr/bin/env python3
"""Terminal client for the todo API.

Account commands (signup, confirm, login, logout, whoami) manage the local
Cognito session. List commands load the caller's list into a TodoStore,
apply one change, and print the resulting list.

Usage:
    todo signup you@example.com
    todo confirm you@example.com 123456
    todo login you@example.com
    todo whoami
    todo logout
    todo list
    todo add "Buy milk" --description "2 litres"
    todo toggle <id>
    todo edit <id> --title "Buy oat milk"
    todo rm <id>

Environment variables:
    TODO_API_BASE_URL   default: http://localhost:3000
    TODO_API_TOKEN      fixed bearer credential (or pass --token); when unset,
                        the signed-in Cognito session is used
    COGNITO_CLIENT_ID   app client id for signup/confirm/login
    TODO_SESSION_FILE   default: ~/.config/todo/session.json
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from typing import Any, Dict, List, Optional, TextIO

from todo_client.api import TodoApiClient
from todo_client.errors import AuthenticationError
from todo_client.service import TodoApplicationService
from todo_client.session import CognitoSession, TokenFile
from todo_client.state import TodoListState
from todo_client.store import TodoStore


def _log(tag: str, message: str, stream: Optional[TextIO] = None) -> None:
    print(f"[{tag}] {message}", file=stream or sys.stderr)


def render(state: TodoListState, stream: Optional[TextIO] = None) -> None:
    stream = stream or sys.stdout
    if not state.todos:
        print("No todos yet.", file=stream)
        return
    for todo in state.todos:
        mark = "x" if todo.completed else " "
        print(f"[{mark}] {todo.title}  ({todo.id})", file=stream)
        if todo.description:
            print(f"      {todo.description}", file=stream)


def build_session(args: argparse.Namespace) -> CognitoSession:
    return CognitoSession(token_file=TokenFile(args.session_file))


def build_store(args: argparse.Namespace) -> TodoStore:
    token = args.token
    api = TodoApiClient(
        token_provider=(lambda: token) if token else build_session(args).id_token,
        base_url=args.base_url,
        scheme=None if args.raw_token else "Bearer",
    )
    return TodoStore(TodoApplicationService(api))


def _edit_changes(args: argparse.Namespace) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if args.title is not None:
        changes["title"] = args.title
    if args.description is not None:
        changes["description"] = args.description
    if args.completed is not None:
        changes["completed"] = args.completed
    return changes


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="todo", description="Manage your todo list.")
    parser.add_argument("--base-url", default=None, help="API base URL (default: $TODO_API_BASE_URL)")
    parser.add_argument("--token", default=os.environ.get("TODO_API_TOKEN"), help="Credential (default: $TODO_API_TOKEN)")
    parser.add_argument("--raw-token", action="store_true", help="Send the credential without the Bearer scheme")
    parser.add_argument("--session-file", default=None, help="Session token file (default: $TODO_SESSION_FILE)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    signup = sub.add_parser("signup", help="Create an account")
    signup.add_argument("email")
    signup.add_argument("--password", default=None)

    confirm = sub.add_parser("confirm", help="Confirm an account with the emailed code")
    confirm.add_argument("email")
    confirm.add_argument("code")

    login = sub.add_parser("login", help="Sign in and store the session")
    login.add_argument("email")
    login.add_argument("--password", default=None)

    sub.add_parser("logout", help="Forget the stored session")
    sub.add_parser("whoami", help="Show the signed-in user")

    sub.add_parser("list", help="Show all todos, newest first")

    add = sub.add_parser("add", help="Create a todo")
    add.add_argument("title")
    add.add_argument("--description", default=None)

    toggle = sub.add_parser("toggle", help="Flip a todo's completed flag")
    toggle.add_argument("todo_id")

    edit = sub.add_parser("edit", help="Change a todo's fields")
    edit.add_argument("todo_id")
    edit.add_argument("--title", default=None)
    edit.add_argument("--description", default=None)
    done = edit.add_mutually_exclusive_group()
    done.add_argument("--completed", dest="completed", action="store_const", const=True, default=None)
    done.add_argument("--not-completed", dest="completed", action="store_const", const=False)

    rm = sub.add_parser("rm", help="Delete a todo")
    rm.add_argument("todo_id")
    return parser.parse_args(argv)


def _password(args: argparse.Namespace) -> str:
    return args.password if args.password is not None else getpass.getpass("Password: ")


def _run_account_command(args: argparse.Namespace) -> int:
    session = build_session(args)
    try:
        if args.command == "signup":
            confirmed = session.sign_up(args.email, _password(args))
            if confirmed:
                _log("OK", f"Account {args.email} created.", sys.stdout)
            else:
                _log("OK", f"Account {args.email} created. Check your email, then run `todo confirm`.", sys.stdout)
        elif args.command == "confirm":
            session.confirm_sign_up(args.email, args.code)
            _log("OK", f"Account {args.email} confirmed. Run `todo login`.", sys.stdout)
        elif args.command == "login":
            session.sign_in(args.email, _password(args))
            _log("OK", f"Signed in as {args.email}.", sys.stdout)
        elif args.command == "logout":
            session.sign_out()
            _log("OK", "Signed out.", sys.stdout)
        elif args.command == "whoami":
            user = session.current_user()
            if user is None:
                _log("ERROR", "Not signed in.")
                return 1
            print(user.get("email") or user.get("username"))
    except AuthenticationError as exc:
        _log("ERROR", exc.message)
        return 1
    return 0


_ACCOUNT_COMMANDS = {"signup", "confirm", "login", "logout", "whoami"}


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.ERROR)

    if args.command in _ACCOUNT_COMMANDS:
        return _run_account_command(args)

    store = build_store(args)
    if not store.fetch_todos():
        _log("ERROR", f"Could not load todos: {store.state.error}")
        return 1

    ok = True
    if args.command == "add":
        ok = store.add_todo(args.title, args.description) is not None
    elif args.command == "toggle":
        ok = store.toggle_todo(args.todo_id) is not None
    elif args.command == "edit":
        ok = store.update_todo(args.todo_id, _edit_changes(args)) is not None
    elif args.command == "rm":
        ok = store.delete_todo(args.todo_id)

    if not ok:
        _log("ERROR", str(store.state.error))
    render(store.state)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
