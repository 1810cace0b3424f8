"""test_layer.py — Unit tests for todo_shared layer modules.

Run from the repository root:
    python3 -m pytest backend/lambda/shared_layer -v
"""

from __future__ import annotations

import base64
import json
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError

# Ensure the layer's python/ directory is importable.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from todo_shared import config
from todo_shared.auth import (
    HeadersRequest,
    LegacyTokenRequest,
    VerificationFailure,
    VerifiedClaims,
    classify_request,
    extract_credential,
    resolve_principal,
)
from todo_shared.aws_clients import _get_ddb
from todo_shared.errors import StorageError, ValidationError
from todo_shared.http_utils import _empty, _error, _parse_body, _path_method, _response
from todo_shared.policy import (
    ALLOW,
    DENY,
    PRINCIPAL_INVALID_CREDENTIAL,
    PRINCIPAL_NO_CREDENTIAL,
    PRINCIPAL_UNKNOWN,
    WILDCARD_RESOURCE,
    decide,
    resource_from_event,
)
from todo_shared.repository import DynamoTodoRepository
from todo_shared.serialization import _deserialize, _next_timestamp, _now_z, _serialize, _serialize_item
from todo_shared.todos import Todo, merge_updates, new_todo

ROUTE_A = "arn:aws:execute-api:us-east-1:123456789012:abc123/$default/GET/todos"
ROUTE_B = "arn:aws:execute-api:us-east-1:123456789012:abc123/$default/DELETE/todos/{todoId}"


class CredentialExtractorTests(unittest.TestCase):
    def test_headers_shape_lowercase(self):
        event = {"headers": {"authorization": "Bearer abc"}}
        self.assertEqual(extract_credential(event), "Bearer abc")
        self.assertIsInstance(classify_request(event), HeadersRequest)

    def test_headers_shape_any_case(self):
        event = {"headers": {"AUTHORIZATION": "Bearer abc"}}
        self.assertEqual(extract_credential(event), "Bearer abc")

    def test_legacy_shape(self):
        event = {"authorizationToken": "allow", "methodArn": ROUTE_A}
        self.assertEqual(extract_credential(event), "allow")
        self.assertIsInstance(classify_request(event), LegacyTokenRequest)

    def test_headers_shape_wins_over_legacy(self):
        event = {"headers": {"Authorization": "Bearer modern"}, "authorizationToken": "legacy"}
        self.assertEqual(extract_credential(event), "Bearer modern")

    def test_falls_back_to_legacy_when_headers_have_no_credential(self):
        event = {"headers": {"host": "example.com", "authorization": "  "}, "authorizationToken": "legacy"}
        self.assertEqual(extract_credential(event), "legacy")

    def test_missing_credential_is_none(self):
        self.assertIsNone(extract_credential({}))
        self.assertIsNone(extract_credential({"headers": None}))
        self.assertIsNone(extract_credential({"headers": {"cookie": "a=b"}}))


class PrincipalResolverTests(unittest.TestCase):
    def test_missing_credential_fails(self):
        self.assertIsInstance(resolve_principal(None), VerificationFailure)
        self.assertIsInstance(resolve_principal("   "), VerificationFailure)

    def test_bearer_token_uses_verifier_subject(self):
        verifier = MagicMock(return_value={"sub": "user-123", "email": "a@example.com"})
        result = resolve_principal("Bearer tok.en.value", verifier=verifier, allow_test_credentials=False)
        self.assertIsInstance(result, VerifiedClaims)
        self.assertEqual(result.subject, "user-123")
        verifier.assert_called_once_with("tok.en.value")

    def test_bearer_scheme_is_case_insensitive(self):
        verifier = MagicMock(return_value={"sub": "user-123"})
        result = resolve_principal("bearer tok", verifier=verifier, allow_test_credentials=False)
        self.assertEqual(result.subject, "user-123")

    def test_verifier_error_fails(self):
        verifier = MagicMock(side_effect=ValueError("Token has expired. Please sign in again."))
        result = resolve_principal("Bearer expired", verifier=verifier, allow_test_credentials=False)
        self.assertIsInstance(result, VerificationFailure)
        self.assertIn("expired", result.reason)

    def test_claims_without_subject_fail(self):
        verifier = MagicMock(return_value={"email": "a@example.com"})
        result = resolve_principal("Bearer tok", verifier=verifier, allow_test_credentials=False)
        self.assertIsInstance(result, VerificationFailure)

    def test_non_bearer_credential_fails_without_calling_verifier(self):
        verifier = MagicMock()
        result = resolve_principal("Basic dXNlcjpwdw==", verifier=verifier, allow_test_credentials=False)
        self.assertIsInstance(result, VerificationFailure)
        verifier.assert_not_called()

    def test_test_sentinels_resolve_when_enabled(self):
        verifier = MagicMock()
        local = resolve_principal("Bearer dummy-jwt-for-local", verifier=verifier, allow_test_credentials=True)
        sam = resolve_principal("allow", verifier=verifier, allow_test_credentials=True)
        self.assertEqual(local.subject, "local-user-from-dummy-jwt")
        self.assertEqual(sam.subject, "user-allow-sam")
        verifier.assert_not_called()

    def test_test_sentinels_rejected_when_disabled(self):
        verifier = MagicMock(side_effect=ValueError("Invalid token header"))
        with patch.object(config, "ALLOW_TEST_CREDENTIALS", False):
            self.assertIsInstance(resolve_principal("allow", verifier=verifier), VerificationFailure)
            self.assertIsInstance(
                resolve_principal("Bearer dummy-jwt-for-local", verifier=verifier),
                VerificationFailure,
            )


class PolicyDecisionTests(unittest.TestCase):
    def test_missing_resource_is_wildcard_deny(self):
        decision = decide("Bearer x", VerifiedClaims(subject="user-1"), None)
        self.assertEqual(decision.effect, DENY)
        self.assertEqual(decision.resource, WILDCARD_RESOURCE)
        self.assertEqual(decision.principal_id, PRINCIPAL_UNKNOWN)

    def test_no_credential_denies_requested_resource(self):
        decision = decide(None, None, ROUTE_A)
        self.assertEqual(decision.effect, DENY)
        self.assertEqual(decision.resource, ROUTE_A)
        self.assertEqual(decision.principal_id, PRINCIPAL_NO_CREDENTIAL)
        self.assertFalse(decision.allowed)
        self.assertEqual(dict(decision.context), {})

    def test_invalid_credential_denies_requested_resource(self):
        decision = decide("Bearer bad", VerificationFailure("bad signature"), ROUTE_A)
        self.assertEqual(decision.effect, DENY)
        self.assertEqual(decision.resource, ROUTE_A)
        self.assertEqual(decision.principal_id, PRINCIPAL_INVALID_CREDENTIAL)

    def test_credential_without_resolution_is_invalid(self):
        decision = decide("Bearer x", None, ROUTE_A)
        self.assertEqual(decision.principal_id, PRINCIPAL_INVALID_CREDENTIAL)

    def test_resolved_principal_allows_with_context(self):
        decision = decide("Bearer good", VerifiedClaims(subject="user-1"), ROUTE_A)
        self.assertEqual(decision.effect, ALLOW)
        self.assertEqual(decision.principal_id, "user-1")
        self.assertTrue(decision.allowed)
        self.assertEqual(dict(decision.context), {"userId": "user-1"})

    def test_decision_is_scoped_to_its_resource(self):
        decision = decide("Bearer good", VerifiedClaims(subject="user-1"), ROUTE_A)
        self.assertTrue(decision.applies_to(ROUTE_A))
        self.assertFalse(decision.applies_to(ROUTE_B))
        self.assertFalse(decision.applies_to(None))
        statement = decision.to_policy()["policyDocument"]["Statement"]
        self.assertEqual(len(statement), 1)
        self.assertEqual(statement[0]["Resource"], ROUTE_A)

    def test_policy_document_shape(self):
        policy = decide("Bearer good", VerifiedClaims(subject="user-1"), ROUTE_A).to_policy()
        self.assertEqual(policy["principalId"], "user-1")
        self.assertEqual(policy["policyDocument"]["Version"], "2012-10-17")
        self.assertEqual(policy["policyDocument"]["Statement"][0]["Action"], "execute-api:Invoke")
        self.assertEqual(policy["policyDocument"]["Statement"][0]["Effect"], "Allow")
        self.assertEqual(policy["context"], {"userId": "user-1"})

    def test_deny_policy_has_no_context(self):
        policy = decide(None, None, ROUTE_A).to_policy()
        self.assertNotIn("context", policy)

    def test_resource_from_event_prefers_route_arn(self):
        self.assertEqual(resource_from_event({"routeArn": ROUTE_A, "methodArn": ROUTE_B}), ROUTE_A)
        self.assertEqual(resource_from_event({"methodArn": ROUTE_B}), ROUTE_B)
        self.assertIsNone(resource_from_event({}))


class HttpUtilsTests(unittest.TestCase):
    def test_response_format(self):
        resp = _response(200, {"key": "val"})
        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(resp["headers"]["Content-Type"], "application/json")
        self.assertIn("Access-Control-Allow-Origin", resp["headers"])
        self.assertEqual(json.loads(resp["body"])["key"], "val")

    def test_error_format(self):
        resp = _error(400, "bad input", "validation_error")
        self.assertEqual(resp["statusCode"], 400)
        body = json.loads(resp["body"])
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "bad input")
        self.assertEqual(body["code"], "validation_error")

    def test_empty_response(self):
        resp = _empty(204)
        self.assertEqual(resp["statusCode"], 204)
        self.assertEqual(resp["body"], "")

    def test_parse_body(self):
        self.assertEqual(_parse_body({"body": '{"key": "val"}', "isBase64Encoded": False}), {"key": "val"})
        self.assertIsNone(_parse_body({"body": "not json"}))
        self.assertIsNone(_parse_body({}))

    def test_parse_body_base64(self):
        raw = base64.b64encode(b'{"key": "b64"}').decode()
        self.assertEqual(_parse_body({"body": raw, "isBase64Encoded": True}), {"key": "b64"})

    def test_path_method(self):
        event = {"requestContext": {"http": {"method": "POST", "path": "/todos"}}}
        self.assertEqual(_path_method(event), ("POST", "/todos"))
        self.assertEqual(_path_method({"httpMethod": "delete", "path": "/todos/1"}), ("DELETE", "/todos/1"))


class SerializationTests(unittest.TestCase):
    def test_serialize_string(self):
        self.assertEqual(_serialize("hello"), {"S": "hello"})

    def test_serialize_item_drops_none(self):
        item = _serialize_item({"title": "x", "description": None, "completed": False})
        self.assertEqual(item, {"title": {"S": "x"}, "completed": {"BOOL": False}})

    def test_deserialize_item(self):
        result = _deserialize({"name": {"S": "test"}, "count": {"N": "42"}})
        self.assertEqual(result, {"name": "test", "count": 42})

    def test_now_z_format(self):
        self.assertRegex(_now_z(), r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}Z$")

    def test_next_timestamp_is_strictly_later(self):
        future = "2999-01-01T00:00:00.000000Z"
        self.assertEqual(_next_timestamp(future), "2999-01-01T00:00:00.000001Z")
        past = "2000-01-01T00:00:00.000000Z"
        self.assertGreater(_next_timestamp(past), past)


class TodoModelTests(unittest.TestCase):
    def test_new_todo_defaults(self):
        todo = new_todo("user-1", "Buy milk")
        self.assertEqual(todo.owner_id, "user-1")
        self.assertFalse(todo.completed)
        self.assertEqual(todo.created_at, todo.updated_at)
        self.assertTrue(todo.id)

    def test_item_round_trip_keeps_key_attributes(self):
        todo = new_todo("user-1", "Buy milk", "2 litres")
        item = todo.to_item()
        self.assertEqual(item["userId"], "user-1")
        self.assertEqual(item["todoId"], todo.id)
        self.assertEqual(Todo.from_item(_deserialize(_serialize_item(item))), todo)

    def test_merge_keeps_identity_and_created_at(self):
        todo = new_todo("user-1", "Buy milk", "2 litres")
        merged = merge_updates(todo, {"completed": True})
        self.assertTrue(merged.completed)
        self.assertEqual(merged.title, "Buy milk")
        self.assertEqual(merged.description, "2 litres")
        self.assertEqual((merged.id, merged.owner_id, merged.created_at), (todo.id, todo.owner_id, todo.created_at))
        self.assertGreater(merged.updated_at, todo.updated_at)


class RepositoryTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.repo = DynamoTodoRepository("todos-test", client=self.client)
        self.todo = new_todo("user-1", "Buy milk")

    def test_requires_table_name(self):
        with patch.object(config, "TODO_TABLE_NAME", ""):
            with self.assertRaises(ValueError):
                DynamoTodoRepository()

    def test_save_puts_full_item(self):
        self.repo.save(self.todo)
        kwargs = self.client.put_item.call_args.kwargs
        self.assertEqual(kwargs["TableName"], "todos-test")
        self.assertEqual(kwargs["Item"]["userId"], {"S": "user-1"})
        self.assertEqual(kwargs["Item"]["todoId"], {"S": self.todo.id})

    def test_get_uses_composite_key(self):
        self.client.get_item.return_value = {"Item": _serialize_item(self.todo.to_item())}
        self.assertEqual(self.repo.get_by_key(self.todo.id, "user-1"), self.todo)
        key = self.client.get_item.call_args.kwargs["Key"]
        self.assertEqual(key, {"userId": {"S": "user-1"}, "todoId": {"S": self.todo.id}})

    def test_get_missing_returns_none(self):
        self.client.get_item.return_value = {}
        self.assertIsNone(self.repo.get_by_key("nope", "user-1"))

    def test_get_never_returns_foreign_owner(self):
        self.client.get_item.return_value = {"Item": _serialize_item(self.todo.to_item())}
        self.assertIsNone(self.repo.get_by_key(self.todo.id, "user-2"))

    def test_list_queries_owner_partition(self):
        self.client.query.return_value = {"Items": [_serialize_item(self.todo.to_item())]}
        self.assertEqual(self.repo.list_by_owner("user-1"), [self.todo])
        kwargs = self.client.query.call_args.kwargs
        self.assertEqual(kwargs["ExpressionAttributeNames"], {"#owner": "userId"})
        self.assertEqual(kwargs["ExpressionAttributeValues"], {":owner": {"S": "user-1"}})
        self.client.scan.assert_not_called()

    def test_blank_owner_is_validation_error(self):
        with self.assertRaises(ValidationError):
            self.repo.list_by_owner("")
        with self.assertRaises(ValidationError):
            self.repo.delete_by_key("id-1", " ")
        self.client.query.assert_not_called()
        self.client.delete_item.assert_not_called()

    def test_client_error_becomes_storage_error(self):
        self.client.get_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "GetItem",
        )
        with self.assertRaises(StorageError):
            self.repo.get_by_key(self.todo.id, "user-1")

    def test_connection_error_becomes_storage_error(self):
        self.client.put_item.side_effect = EndpointConnectionError(endpoint_url="https://dynamodb")
        with self.assertRaises(StorageError):
            self.repo.save(self.todo)


class AwsClientTests(unittest.TestCase):
    @patch("todo_shared.aws_clients.boto3")
    def test_get_ddb_singleton(self, mock_boto3):
        import todo_shared.aws_clients as clients

        clients._ddb = None  # Reset singleton
        mock_boto3.client.return_value = MagicMock()

        result1 = _get_ddb()
        result2 = _get_ddb()

        self.assertIs(result1, result2)
        mock_boto3.client.assert_called_once()
        self.assertEqual(mock_boto3.client.call_args.args[0], "dynamodb")

        clients._ddb = None  # Clean up


if __name__ == "__main__":
    unittest.main()
