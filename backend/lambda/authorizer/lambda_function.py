"""authorizer/lambda_function.py

API Gateway Lambda REQUEST authorizer for the todo API.

Flow per invocation:
    extract credential -> resolve principal -> decide -> IAM policy document

The policy names only the route/method ARN of the current request, and the
authorizer is deployed with result caching disabled, so every request is
decided on its own credential. On Allow, the context carries the principal
id under ``userId``.

Environment variables:
    COGNITO_USER_POOL_ID      default: ""
    COGNITO_CLIENT_ID         default: ""
    ALLOW_TEST_CREDENTIALS    default: false (development only)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from todo_shared.auth import PrincipalResult, VerificationFailure, extract_credential, resolve_principal
from todo_shared.policy import DENY, PRINCIPAL_UNKNOWN, WILDCARD_RESOURCE, Decision, decide, resource_from_event
from todo_shared.serialization import _emit_structured_observability

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def _log_decision(decision: Decision, principal: Optional[PrincipalResult]) -> None:
    reason = principal.reason if isinstance(principal, VerificationFailure) else ""
    if not decision.allowed:
        logger.warning("Denied %s on %s%s", decision.principal_id, decision.resource, f": {reason}" if reason else "")
    _emit_structured_observability(
        component="authorizer",
        event="authorization_decision",
        principal_id=decision.principal_id,
        resource=decision.resource,
        error_code=reason,
        extra={"effect": decision.effect},
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    event = event if isinstance(event, dict) else {}
    resource = resource_from_event(event)
    if not resource:
        logger.error("Resource ARN (routeArn or methodArn) is missing in the event.")

    principal: Optional[PrincipalResult] = None
    try:
        credential = extract_credential(event)
        if credential:
            principal = resolve_principal(credential)
        decision = decide(credential, principal, resource)
    except Exception:
        logger.exception("Authorizer failed; denying request")
        decision = Decision(
            effect=DENY,
            principal_id=PRINCIPAL_UNKNOWN,
            resource=resource or WILDCARD_RESOURCE,
        )

    _log_decision(decision, principal)
    return decision.to_policy()
