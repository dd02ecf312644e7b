# backend/tests/test_invoker.py

import io
import json
import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError
from shared.errors import ConfigError, CredentialError, UpstreamError
from shared.invoker import AnalysisInvoker
from shared.models import Credentials, DeploymentOutputs

FUNCTION_ARN = 'arn:aws:lambda:us-east-1:123456789012:function:analyze-package'
OUTPUTS = DeploymentOutputs(region='us-east-1', identity_pool_id='us-east-1:pool', analyze_function_arn=FUNCTION_ARN)

ANALYSIS = {
    "packageName": "left-pad",
    "version": "1.3.0",
    "totalScore": 82,
    "pillarScores": {"SECURITY": 90, "MAINTENANCE": 70},
    "signalScores": {"SECURITY": {"hasProvenance": 4}},
    "signalWeights": {"SECURITY": {"hasProvenance": 30}},
}


def lambda_response(payload, function_error=None):
    response = {'StatusCode': 200, 'Payload': io.BytesIO(json.dumps(payload).encode('utf-8'))}
    if function_error:
        response['FunctionError'] = function_error
    return response


@pytest.fixture
def broker():
    broker = MagicMock()
    broker.get_delegated_credentials.return_value = Credentials('AKIA', 'secret', 'token')
    return broker


@pytest.fixture
def lambda_client():
    return MagicMock()


@pytest.fixture
def invoker(broker, lambda_client):
    return AnalysisInvoker(OUTPUTS, broker=broker, client_factory=lambda creds, region: lambda_client)


def test_successful_invoke_returns_analysis_unchanged(invoker, lambda_client, broker):
    lambda_client.invoke.return_value = lambda_response({
        "statusCode": 200,
        "body": json.dumps({"packageName": "left-pad", "analysis": ANALYSIS}),
    })

    result = invoker.invoke("  left-pad  ")

    assert result.to_dict() == ANALYSIS
    assert list(result.pillar_scores) == ["SECURITY", "MAINTENANCE"]
    broker.get_delegated_credentials.assert_called_once_with('us-east-1:pool', 'us-east-1')
    lambda_client.invoke.assert_called_once_with(
        FunctionName=FUNCTION_ARN, Payload=json.dumps({'packageName': 'left-pad'})
    )


def test_out_of_range_scores_are_passed_through(invoker, lambda_client):
    """The invoker is transport only; range checks belong to the engine."""
    analysis = dict(ANALYSIS, totalScore=140)
    lambda_client.invoke.return_value = lambda_response({"statusCode": 200, "body": json.dumps({"analysis": analysis})})
    assert invoker.invoke("left-pad").total_score == 140


def test_non_200_status_raises_upstream_error_with_detail(invoker, lambda_client):
    lambda_client.invoke.return_value = lambda_response({"statusCode": 500, "body": {"error": "x"}})

    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")

    err = exc_info.value
    assert "x" in str(err)
    assert err.kind == "status"
    assert err.status_code == 500
    assert err.detail == "x"


def test_non_200_with_string_body_prefers_error_then_message(invoker, lambda_client):
    lambda_client.invoke.return_value = lambda_response({
        "statusCode": 500,
        "body": json.dumps({"error": "Failed to analyze package", "message": "npm registry timeout"}),
    })
    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")
    assert exc_info.value.detail == "Failed to analyze package"

    lambda_client.invoke.return_value = lambda_response({"statusCode": 400, "body": json.dumps({"message": "bad name"})})
    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")
    assert exc_info.value.detail == "bad name"
    assert exc_info.value.status_code == 400


def test_non_200_with_unparseable_body_uses_raw_text(invoker, lambda_client):
    lambda_client.invoke.return_value = lambda_response({"statusCode": 502, "body": "Bad Gateway"})
    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")
    assert exc_info.value.detail == "Bad Gateway"


def test_non_200_without_body_is_unknown_error(invoker, lambda_client):
    lambda_client.invoke.return_value = lambda_response({"statusCode": 503})
    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")
    assert exc_info.value.detail == "Unknown error"


def test_function_error_carries_fault_payload(invoker, lambda_client):
    fault = {"errorMessage": "Task timed out after 300.00 seconds", "errorType": "Sandbox.Timedout"}
    lambda_client.invoke.return_value = lambda_response(fault, function_error="Unhandled")

    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")

    err = exc_info.value
    assert err.kind == "function_error"
    assert err.detail == fault
    assert "Task timed out" in str(err)


def test_invoke_api_failure_is_upstream_error(invoker, lambda_client):
    lambda_client.invoke.side_effect = ClientError(
        {'Error': {'Code': 'AccessDeniedException', 'Message': 'not authorized to perform lambda:InvokeFunction'}},
        'Invoke',
    )
    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")
    assert exc_info.value.kind == "invoke"
    assert "not authorized" in exc_info.value.detail


def test_malformed_success_body_is_upstream_error(invoker, lambda_client):
    lambda_client.invoke.return_value = lambda_response({"statusCode": 200, "body": json.dumps({"packageName": "x"})})
    with pytest.raises(UpstreamError):
        invoker.invoke("left-pad")


@pytest.mark.parametrize("analysis", [None, [1, 2], "oops"])
def test_non_object_analysis_is_upstream_error(invoker, lambda_client, analysis):
    lambda_client.invoke.return_value = lambda_response({"statusCode": 200, "body": json.dumps({"analysis": analysis})})

    with pytest.raises(UpstreamError) as exc_info:
        invoker.invoke("left-pad")
    assert exc_info.value.detail.startswith("Malformed analysis response")


def test_non_object_success_body_is_upstream_error(invoker, lambda_client):
    lambda_client.invoke.return_value = lambda_response({"statusCode": 200, "body": json.dumps([ANALYSIS])})
    with pytest.raises(UpstreamError):
        invoker.invoke("left-pad")


def test_missing_function_arn_is_config_error(broker, lambda_client):
    outputs = DeploymentOutputs(region='us-east-1', identity_pool_id='us-east-1:pool', analyze_function_arn=None)
    invoker = AnalysisInvoker(outputs, broker=broker, client_factory=lambda creds, region: lambda_client)

    with pytest.raises(ConfigError, match="ARN"):
        invoker.invoke("left-pad")
    broker.get_delegated_credentials.assert_not_called()


def test_credential_failure_stops_before_invoke(invoker, broker, lambda_client):
    broker.get_delegated_credentials.side_effect = CredentialError("Failed to get unauthenticated credentials")
    with pytest.raises(CredentialError):
        invoker.invoke("left-pad")
    lambda_client.invoke.assert_not_called()


def test_client_built_from_delegated_credentials(broker, lambda_client):
    calls = []

    def factory(credentials, region):
        calls.append((credentials, region))
        return lambda_client

    lambda_client.invoke.return_value = lambda_response({"statusCode": 200, "body": json.dumps({"analysis": ANALYSIS})})
    AnalysisInvoker(OUTPUTS, broker=broker, client_factory=factory).invoke("left-pad")

    assert calls == [(Credentials('AKIA', 'secret', 'token'), 'us-east-1')]
