import os
import logging
import threading
from typing import Dict, Iterable, MutableMapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import ConfigError
from shared.models import TokenSpec

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Secrets the analysis engine reads from its environment.
# Add an entry here (and grant the function read access to the secret) to provision another token.
TOKEN_SPECS = [
    TokenSpec(logical_id='GitHubToken', secret_name='GITHUB_TOKEN', env_var_for_secret_name='GITHUB_TOKEN_SECRET_NAME'),
    TokenSpec(logical_id='NpmToken', secret_name='NPM_TOKEN', env_var_for_secret_name='NPM_TOKEN_SECRET_NAME'),
]


class TokenCache:
    """
    Secret values keyed by their Secrets Manager name.

    One instance lives for the whole process (a warm Lambda container), so a secret is fetched
    at most once per container. Entries are write-once and never invalidated.
    """

    def __init__(self):
        self._values: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __contains__(self, secret_name: str) -> bool:
        return secret_name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get(self, secret_name: str) -> Optional[str]:
        return self._values.get(secret_name)

    def put(self, secret_name: str, value: str) -> str:
        """Stores a value unless one is already cached; returns the value that is kept."""
        with self._lock:
            return self._values.setdefault(secret_name, value)


class TokenProvisioner:
    def __init__(self, token_cache: TokenCache, secrets_client=None,
                 environ: Optional[MutableMapping[str, str]] = None):
        self.token_cache = token_cache
        self._secrets_client = secrets_client
        self.environ = os.environ if environ is None else environ

    @property
    def secrets_client(self):
        if self._secrets_client is None:
            self._secrets_client = boto3.client(
                'secretsmanager', region_name=os.environ.get('AWS_REGION', 'us-east-1')
            )
        return self._secrets_client

    def _fetch_secret(self, secret_name: str) -> str:
        try:
            response = self.secrets_client.get_secret_value(SecretId=secret_name)
        except ClientError as e:
            logger.error(f"Failed to read secret {secret_name}: {e.response['Error']['Message']}")
            raise ConfigError(
                f"Could not read secret {secret_name}",
                detail=e.response['Error'].get('Code'),
            ) from e
        except BotoCoreError as e:
            logger.error(f"Failed to reach Secrets Manager for {secret_name}: {e}")
            raise ConfigError(f"Could not read secret {secret_name}", detail=str(e)) from e
        return response.get('SecretString') or ''

    def ensure_tokens_loaded(self, specs: Iterable[TokenSpec] = TOKEN_SPECS) -> None:
        """
        Exports every configured token into the environment, fetching each secret at most once
        per process. Specs whose secret-name variable is unset are skipped without error.
        """
        for spec in specs:
            secret_name = self.environ.get(spec.env_var_for_secret_name)
            if not secret_name:
                logger.info(f"Skipping {spec.token_env_var}: {spec.env_var_for_secret_name} not configured")
                continue

            if secret_name not in self.token_cache:
                logger.info(f"Fetching secret for {spec.token_env_var}")
                self.token_cache.put(secret_name, self._fetch_secret(secret_name))

            self.environ[spec.token_env_var] = self.token_cache.get(secret_name)
            logger.info(f"Set {spec.token_env_var} from secret")
