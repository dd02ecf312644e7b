import os
import json
import logging
from typing import Optional

from shared.errors import ConfigError
from shared.models import DeploymentOutputs

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_OUTPUTS_FILE = 'amplify_outputs.json'


def load_deployment_outputs(path: Optional[str] = None) -> DeploymentOutputs:
    """
    Reads the deployment output document written at deploy time.

    The region and identity pool live under `auth`, the analysis function ARN under `custom`.
    A missing function ARN is tolerated here and reported by the invoker at call time.
    """
    path = path or os.environ.get('DEPLOYMENT_OUTPUTS_PATH') or os.path.join(os.getcwd(), DEFAULT_OUTPUTS_FILE)
    try:
        with open(path, encoding='utf-8') as f:
            document = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load deployment outputs from {path}: {e}")
        raise ConfigError("Deployment configuration not found", detail=str(e)) from e

    logger.info(f"Loaded deployment outputs from {path}")
    auth = document.get('auth') or {}
    custom = document.get('custom') or {}
    return DeploymentOutputs(
        region=auth.get('aws_region'),
        identity_pool_id=auth.get('identity_pool_id'),
        analyze_function_arn=custom.get('analyzePackageFunctionArn'),
    )
