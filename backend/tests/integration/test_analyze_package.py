# backend/tests/integration/test_analyze_package.py

import json
import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError
from functions.analyze_package.app import MISSING_PACKAGE, lambda_handler
from shared.providers import LocalAnalysisProvider
from shared.tokens import TOKEN_SPECS, TokenCache, TokenProvisioner

ANALYSIS = {"packageName": "left-pad", "version": "1.3.0", "totalScore": 82,
            "pillarScores": {"SECURITY": 90, "MAINTENANCE": 70}}


@pytest.fixture
def secrets_client():
    client = MagicMock()
    client.get_secret_value.return_value = {'SecretString': 'ghp_test_token'}
    return client


@pytest.fixture
def environ():
    return {'GITHUB_TOKEN_SECRET_NAME': 'GITHUB_TOKEN'}


@pytest.fixture
def engine():
    return MagicMock(return_value=ANALYSIS)


@pytest.fixture
def local_provider(mocker, secrets_client, environ, engine):
    """A local provider wired to a fresh process cache, with the Secrets Manager edge faked."""
    provisioner = TokenProvisioner(TokenCache(), secrets_client=secrets_client, environ=environ)
    provider = LocalAnalysisProvider(engine, provisioner, TOKEN_SPECS)
    mocker.patch('functions.analyze_package.app.get_provider', return_value=provider)
    return provider


def test_direct_invocation_payload(local_provider, engine, environ):
    response = lambda_handler({"packageName": "left-pad"}, None)

    assert response["statusCode"] == 200
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"
    body = json.loads(response["body"])
    assert body == {"packageName": "left-pad", "analysis": ANALYSIS}
    engine.assert_called_once_with("left-pad")
    assert environ["GITHUB_TOKEN"] == "ghp_test_token"


def test_http_body_invocation(local_provider):
    event = {"requestContext": {"http": {"method": "POST"}}, "body": json.dumps({"packageName": "left-pad"})}
    response = lambda_handler(event, None)
    assert response["statusCode"] == 200


def test_package_name_is_url_decoded(local_provider, engine):
    response = lambda_handler({"packageName": "%40aws-cdk%2Faws-lambda"}, None)

    assert response["statusCode"] == 200
    engine.assert_called_once_with("@aws-cdk/aws-lambda")


def test_warm_invocations_fetch_secrets_once(local_provider, secrets_client):
    lambda_handler({"packageName": "left-pad"}, None)
    lambda_handler({"packageName": "right-pad"}, None)

    secrets_client.get_secret_value.assert_called_once_with(SecretId='GITHUB_TOKEN')


def test_preflight_makes_no_downstream_calls(local_provider, secrets_client, engine):
    event = {"requestContext": {"http": {"method": "OPTIONS"}}}

    response = lambda_handler(event, None)

    assert response == {
        "statusCode": 200,
        "headers": {
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Headers': 'Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token',
            'Access-Control-Allow-Methods': 'OPTIONS,POST,GET',
        },
        "body": "",
    }
    secrets_client.get_secret_value.assert_not_called()
    engine.assert_not_called()


@pytest.mark.parametrize("event", [
    {},
    {"packageName": ""},
    {"body": json.dumps({"name": "left-pad"})},
])
def test_missing_package_name(local_provider, engine, event):
    response = lambda_handler(event, None)

    assert response["statusCode"] == 400
    assert json.loads(response["body"]) == {"error": MISSING_PACKAGE}
    engine.assert_not_called()


def test_invalid_json_body(local_provider):
    response = lambda_handler({"body": "{not json"}, None)
    assert response["statusCode"] == 400
    assert "not valid JSON" in json.loads(response["body"])["error"]


def test_engine_failure_is_500(local_provider, engine):
    engine.side_effect = RuntimeError("GitHub API rate limit exceeded")

    response = lambda_handler({"packageName": "left-pad"}, None)

    assert response["statusCode"] == 500
    assert json.loads(response["body"]) == {
        "error": "Failed to analyze package",
        "message": "GitHub API rate limit exceeded",
    }


def test_secret_failure_does_not_break_later_requests(local_provider, secrets_client, environ):
    secrets_client.get_secret_value.side_effect = [
        ClientError({'Error': {'Code': 'AccessDeniedException', 'Message': 'denied'}}, 'GetSecretValue'),
        {'SecretString': 'ghp_test_token'},
    ]

    failed = lambda_handler({"packageName": "left-pad"}, None)
    recovered = lambda_handler({"packageName": "left-pad"}, None)

    assert failed["statusCode"] == 500
    assert "Could not read secret GITHUB_TOKEN" in json.loads(failed["body"])["message"]
    assert recovered["statusCode"] == 200
    assert environ["GITHUB_TOKEN"] == "ghp_test_token"
