"""todo_shared.policy — Policy decision point for the request authorizer.

``decide`` turns (credential, resolution result, requested resource) into a
``Decision``. A decision names exactly one resource, the route or method ARN
of the request it was computed for. Decisions are never cached; the API
Gateway authorizer is deployed with a zero result TTL.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from todo_shared.auth import PrincipalResult, VerifiedClaims
from todo_shared.config import PRINCIPAL_CONTEXT_KEY

ALLOW = "Allow"
DENY = "Deny"

WILDCARD_RESOURCE = "*"
PRINCIPAL_UNKNOWN = "unknown"
PRINCIPAL_NO_CREDENTIAL = "user-deny-no-token"
PRINCIPAL_INVALID_CREDENTIAL = "user-deny-invalid-token"

POLICY_VERSION = "2012-10-17"
INVOKE_ACTION = "execute-api:Invoke"


@dataclass(frozen=True)
class Decision:
    effect: str
    principal_id: str
    resource: str
    context: Mapping[str, str] = field(default_factory=dict)

    @property
    def allowed(self) -> bool:
        return self.effect == ALLOW

    def applies_to(self, resource: Optional[str]) -> bool:
        """True only for the exact resource this decision was computed for."""
        return bool(resource) and resource == self.resource

    def to_policy(self) -> Dict[str, Any]:
        """Render as an API Gateway Lambda authorizer result."""
        result: Dict[str, Any] = {
            "principalId": self.principal_id,
            "policyDocument": {
                "Version": POLICY_VERSION,
                "Statement": [
                    {
                        "Action": INVOKE_ACTION,
                        "Effect": self.effect,
                        "Resource": self.resource,
                    }
                ],
            },
        }
        if self.context:
            result["context"] = dict(self.context)
        return result


def resource_from_event(event: Mapping[str, Any]) -> Optional[str]:
    """Route ARN (HTTP API) or method ARN (REST API) of the request."""
    for key in ("routeArn", "methodArn"):
        value = event.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def decide(
    credential: Optional[str],
    principal: Optional[PrincipalResult],
    resource: Optional[str],
) -> Decision:
    if not resource:
        return Decision(effect=DENY, principal_id=PRINCIPAL_UNKNOWN, resource=WILDCARD_RESOURCE)

    if not credential:
        return Decision(effect=DENY, principal_id=PRINCIPAL_NO_CREDENTIAL, resource=resource)

    if not isinstance(principal, VerifiedClaims):
        return Decision(effect=DENY, principal_id=PRINCIPAL_INVALID_CREDENTIAL, resource=resource)

    return Decision(
        effect=ALLOW,
        principal_id=principal.subject,
        resource=resource,
        context={PRINCIPAL_CONTEXT_KEY: principal.subject},
    )
