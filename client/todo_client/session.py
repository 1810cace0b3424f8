"""todo_client.session — Cognito sign-up / sign-in and the local token file.

Flow:
    signup -> confirm (emailed code) -> login -> API calls -> logout

``CognitoSession.id_token`` is the token provider handed to
``TodoApiClient``. It returns the stored id token, refreshing it with the
refresh token once it is about to expire, or None when nobody is signed in
(the API client then raises ``NotAuthenticatedError``).

Environment variables:
    COGNITO_CLIENT_ID      app client id (USER_PASSWORD_AUTH enabled, no secret)
    COGNITO_REGION         default: us-east-1
    TODO_SESSION_FILE      default: ~/.config/todo/session.json
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import boto3
import jwt
from botocore.exceptions import BotoCoreError, ClientError

from todo_client.errors import AuthenticationError, NotAuthenticatedError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

COGNITO_CLIENT_ID = os.environ.get("COGNITO_CLIENT_ID", "")
COGNITO_REGION = os.environ.get("COGNITO_REGION", "us-east-1")
TODO_SESSION_FILE = os.environ.get(
    "TODO_SESSION_FILE", os.path.join(os.path.expanduser("~"), ".config", "todo", "session.json")
)

# Refresh this many seconds before the id token actually expires.
REFRESH_MARGIN_SECONDS = 60

_MESSAGES = {
    "NotAuthorizedException": "Incorrect username or password.",
    "UserNotFoundException": "Incorrect username or password.",
    "UserNotConfirmedException": "Account is not confirmed yet. Run `todo confirm` with the emailed code.",
    "UsernameExistsException": "An account with this email already exists.",
    "CodeMismatchException": "Invalid verification code.",
    "ExpiredCodeException": "Verification code has expired. Please request a new one.",
    "InvalidPasswordException": "Password does not meet the pool's password policy.",
}


@dataclass(frozen=True)
class SessionTokens:
    id_token: str
    access_token: str
    refresh_token: Optional[str]
    expires_at: float

    def expiring(self, now: float) -> bool:
        return now >= self.expires_at - REFRESH_MARGIN_SECONDS


class TokenFile:
    """JSON token file, readable by the owner only."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = Path(path or TODO_SESSION_FILE)

    def load(self) -> Optional[SessionTokens]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return SessionTokens(
                id_token=data["id_token"],
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expires_at=float(data["expires_at"]),
            )
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None

    def save(self, tokens: SessionTokens) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(asdict(tokens), fh)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class CognitoSession:
    def __init__(
        self,
        client_id: Optional[str] = None,
        region: Optional[str] = None,
        token_file: Optional[TokenFile] = None,
        client: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id or COGNITO_CLIENT_ID
        self.region = region or COGNITO_REGION
        self.token_file = token_file or TokenFile()
        self._client = client
        self._clock = clock

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("cognito-idp", region_name=self.region)
        return self._client

    def _call(self, operation: str, **kwargs: Any) -> Dict[str, Any]:
        if not self.client_id:
            raise AuthenticationError("COGNITO_CLIENT_ID is not set.", "not_configured")
        try:
            return getattr(self.client, operation)(ClientId=self.client_id, **kwargs)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            code = error.get("Code", "")
            logger.warning("Cognito %s failed: %s", operation, code)
            raise AuthenticationError(_MESSAGES.get(code) or error.get("Message") or str(exc), code) from exc
        except BotoCoreError as exc:
            logger.warning("Cognito %s unreachable: %s", operation, exc)
            raise AuthenticationError("Could not reach the sign-in service.", "network_error") from exc

    def _store(self, resp: Dict[str, Any], refresh_token: Optional[str] = None) -> SessionTokens:
        result = resp.get("AuthenticationResult") or {}
        if not result.get("IdToken"):
            challenge = resp.get("ChallengeName")
            if challenge:
                raise AuthenticationError(
                    f"Sign-in needs the {challenge} challenge, which this client does not support.",
                    "challenge_required",
                )
            raise AuthenticationError("No id token in Cognito response.", "bad_response")
        tokens = SessionTokens(
            id_token=result["IdToken"],
            access_token=result.get("AccessToken", ""),
            refresh_token=result.get("RefreshToken") or refresh_token,
            expires_at=self._clock() + float(result.get("ExpiresIn", 3600)),
        )
        self.token_file.save(tokens)
        return tokens

    # -- account ----------------------------------------------------------

    def sign_up(self, email: str, password: str) -> bool:
        """Register ``email``. Returns True when the pool confirmed it already."""
        resp = self._call(
            "sign_up",
            Username=email,
            Password=password,
            UserAttributes=[{"Name": "email", "Value": email}],
        )
        return bool(resp.get("UserConfirmed"))

    def confirm_sign_up(self, email: str, code: str) -> None:
        self._call("confirm_sign_up", Username=email, ConfirmationCode=code)

    # -- session ----------------------------------------------------------

    def sign_in(self, email: str, password: str) -> SessionTokens:
        """Authenticate and replace the stored session. A failure signs out."""
        try:
            resp = self._call(
                "initiate_auth",
                AuthFlow="USER_PASSWORD_AUTH",
                AuthParameters={"USERNAME": email, "PASSWORD": password},
            )
            return self._store(resp)
        except AuthenticationError:
            self.token_file.clear()
            raise

    def refresh(self) -> SessionTokens:
        tokens = self.token_file.load()
        if tokens is None or not tokens.refresh_token:
            raise NotAuthenticatedError("Not signed in. Run `todo login`.")
        try:
            resp = self._call(
                "initiate_auth",
                AuthFlow="REFRESH_TOKEN_AUTH",
                AuthParameters={"REFRESH_TOKEN": tokens.refresh_token},
            )
        except AuthenticationError as exc:
            if exc.code == "NotAuthorizedException":
                self.token_file.clear()
            raise
        return self._store(resp, refresh_token=tokens.refresh_token)

    def sign_out(self) -> None:
        """Forget the local session."""
        self.token_file.clear()

    def id_token(self) -> Optional[str]:
        tokens = self.token_file.load()
        if tokens is None:
            return None
        if tokens.expiring(self._clock()):
            try:
                tokens = self.refresh()
            except (AuthenticationError, NotAuthenticatedError) as exc:
                logger.warning("Session refresh failed: %s", exc)
                return None
        return tokens.id_token

    def current_user(self) -> Optional[Dict[str, Any]]:
        """Username and email from the stored id token, or None."""
        token = self.id_token()
        if not token:
            return None
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as exc:
            logger.warning("Stored id token is not a JWT: %s", exc)
            return None
        return {
            "username": claims.get("cognito:username") or claims.get("sub"),
            "email": claims.get("email"),
            "email_verified": claims.get("email_verified"),
        }
