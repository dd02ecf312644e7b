import logging

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import CredentialError
from shared.models import Credentials

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Single-shot calls: a failed exchange fails the request
NO_RETRY = {'total_max_attempts': 1, 'mode': 'standard'}


def _anonymous_identity_client(region: str):
    # Unsigned so that no ambient AWS credentials are ever attached to the exchange
    return boto3.client(
        'cognito-identity',
        region_name=region,
        config=Config(signature_version=UNSIGNED, retries=NO_RETRY),
    )


class CredentialBroker:
    """
    Exchanges an anonymous Cognito identity for short-lived AWS credentials.

    The credentials carry only what the identity pool grants unauthenticated identities,
    which is what lets badges be fetched without an end-user login.
    """

    def __init__(self, identity_client=None):
        self.identity_client = identity_client

    def get_delegated_credentials(self, identity_pool_id: str, region: str) -> Credentials:
        if not identity_pool_id:
            raise CredentialError("Identity pool id is not configured")

        client = self.identity_client or _anonymous_identity_client(region)
        try:
            identity_id = client.get_id(IdentityPoolId=identity_pool_id).get('IdentityId')
            if not identity_id:
                raise CredentialError("Identity provider returned no identity")
            logger.info(f"Obtained anonymous identity {identity_id}")

            response = client.get_credentials_for_identity(IdentityId=identity_id)
        except ClientError as e:
            error = e.response['Error']
            logger.error(f"Credential exchange failed: ErrorCode={error.get('Code')}, Message={error.get('Message')}")
            raise CredentialError(
                f"Failed to get unauthenticated credentials: {error.get('Message', error.get('Code'))}",
                detail=error.get('Code'),
            ) from e
        except BotoCoreError as e:
            logger.error(f"Credential exchange failed: {e}")
            raise CredentialError(f"Failed to get unauthenticated credentials: {e}") from e

        creds = response.get('Credentials')
        if not creds or not creds.get('AccessKeyId') or not creds.get('SecretKey'):
            raise CredentialError("Failed to get unauthenticated credentials")

        return Credentials(
            access_key_id=creds['AccessKeyId'],
            secret_access_key=creds['SecretKey'],
            session_token=creds.get('SessionToken'),
            expiration=creds.get('Expiration'),
        )
