"""todo_client — Client for the todo API.

Provides:
    - HTTP client for the /todos endpoints
    - Application service (client-side validation, ordering, toggle)
    - Synchronization store with optimistic delete/toggle and rollback
    - Cognito session (sign up, sign in, token file, refresh)
    - Terminal renderer (``todo`` command)
"""

__version__ = "1.0.0"
