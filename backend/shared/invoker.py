import json
import logging
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.credentials import CredentialBroker, NO_RETRY
from shared.errors import ConfigError, UpstreamError, UNKNOWN_ERROR
from shared.models import AnalysisResult, Credentials, DeploymentOutputs

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Matches the analysis function's own timeout
INVOKE_READ_TIMEOUT_SECONDS = 300


def lambda_client_for(credentials: Credentials, region: str):
    return boto3.client(
        'lambda',
        region_name=region,
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token,
        config=Config(read_timeout=INVOKE_READ_TIMEOUT_SECONDS, retries=NO_RETRY),
    )


def _read_payload(response: dict) -> Any:
    payload = response.get('Payload')
    raw = payload.read() if hasattr(payload, 'read') else payload
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8')
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _error_detail(body: Any) -> str:
    """Pulls the most specific message out of a non-200 response body."""
    if not body:
        return UNKNOWN_ERROR
    if isinstance(body, str):
        try:
            parsed = json.loads(body)
        except ValueError:
            return body
        if not isinstance(parsed, dict):
            return body
        body = parsed
    if isinstance(body, dict):
        return body.get('error') or body.get('message') or json.dumps(body)
    return str(body)


class AnalysisInvoker:
    """
    Invokes the deployed analysis function on behalf of anonymous callers.

    Pure transport: the analysis embedded in a successful response is returned as-is.
    """

    def __init__(self, outputs: DeploymentOutputs, broker: Optional[CredentialBroker] = None,
                 client_factory: Optional[Callable[[Credentials, str], Any]] = None):
        self.outputs = outputs
        self.broker = broker or CredentialBroker()
        self.client_factory = client_factory or lambda_client_for

    def invoke(self, package_name: str) -> AnalysisResult:
        package_name = package_name.strip()
        function_arn = self.outputs.analyze_function_arn
        if not function_arn:
            raise ConfigError("Lambda function ARN not found in outputs")

        credentials = self.broker.get_delegated_credentials(self.outputs.identity_pool_id, self.outputs.region)
        lambda_client = self.client_factory(credentials, self.outputs.region)

        logger.info(f"Invoking analysis function for package: {package_name}")
        try:
            response = lambda_client.invoke(
                FunctionName=function_arn,
                Payload=json.dumps({'packageName': package_name}),
            )
        except ClientError as e:
            error = e.response['Error']
            logger.error(f"Lambda invoke failed: ErrorCode={error.get('Code')}, Message={error.get('Message')}")
            raise UpstreamError("Lambda invoke failed", kind="invoke", detail=error.get('Message') or error.get('Code')) from e
        except BotoCoreError as e:
            logger.error(f"Lambda invoke failed: {e}")
            raise UpstreamError("Lambda invoke failed", kind="invoke", detail=str(e)) from e

        payload = _read_payload(response)
        logger.info(f"Lambda response status: {response.get('StatusCode')}")

        if response.get('FunctionError'):
            logger.error(f"Lambda function error ({response['FunctionError']}): {payload}")
            raise UpstreamError(
                f"Lambda function error: {json.dumps(payload, default=str)}",
                kind="function_error",
                detail=payload,
            )

        if not isinstance(payload, dict):
            raise UpstreamError("Lambda returned an unreadable payload", kind="status", detail=UNKNOWN_ERROR)

        status_code = payload.get('statusCode')
        if status_code != 200:
            detail = _error_detail(payload.get('body'))
            logger.error(f"Failed to analyze package {package_name}. Status: {status_code}, Detail: {detail}")
            raise UpstreamError(f"Lambda error ({status_code}): {detail}", kind="status",
                                status_code=status_code, detail=detail)

        body = payload.get('body')
        try:
            result = json.loads(body) if isinstance(body, str) else body
            if not isinstance(result, dict) or not isinstance(result.get('analysis'), dict):
                raise ValueError("no analysis object in response body")
            return AnalysisResult.from_dict(result['analysis'])
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise UpstreamError("Lambda returned a malformed analysis", kind="status",
                                status_code=status_code, detail=f"Malformed analysis response: {e}") from e
