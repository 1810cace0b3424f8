"""todo_shared — Shared code for the todo Lambda functions.

Provides:
    - Environment configuration and logging setup
    - Bearer credential extraction and principal resolution (Cognito JWT)
    - Policy decision point for the request authorizer
    - DynamoDB client singleton and item (de)serialization
    - Tenant-scoped todo repository and CRUD use cases
    - HTTP response helpers with CORS
"""

__version__ = "1.0.0"
