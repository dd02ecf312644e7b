# backend/functions/analyze_package/app.py

import os
import logging
from urllib.parse import unquote

from shared.errors import ValidationError, to_error_body
from shared.providers import LOCAL, build_provider
from shared.responses import get_body_field, is_preflight, json_response, preflight_response
from shared.tokens import TokenCache

logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

MISSING_PACKAGE = 'No package name provided. Please send a "packageName" field.'

# Created once per container: secrets fetched here survive across warm invocations
TOKEN_CACHE = TokenCache()
_provider = None


def get_provider():
    global _provider
    if _provider is None:
        _provider = build_provider(os.environ.get('ANALYSIS_PROVIDER', LOCAL), token_cache=TOKEN_CACHE)
    return _provider


def get_package_name(event: dict) -> str:
    """Reads packageName from the JSON body when one is sent, otherwise from the event itself."""
    if event.get('body'):
        package_name = get_body_field(event, 'packageName')
    else:
        package_name = event.get('packageName')

    if not package_name or not isinstance(package_name, str):
        raise ValidationError(MISSING_PACKAGE)
    return package_name


def lambda_handler(event, context):
    """
    Analysis function entry point.

    Invoked directly (payload {"packageName": ...}) by the score API, or over HTTP with the
    same field in a JSON body. Runs the engine in-process and answers with the
    {statusCode, headers, body} envelope either way.
    """
    if is_preflight(event):
        return preflight_response()

    try:
        package_name = get_package_name(event)
    except ValidationError as e:
        logger.info(f"Rejected request: {e.message}")
        status_code, body = to_error_body(e)
        return json_response(status_code, {"error": body["error"]})

    try:
        logger.info(f"Analyzing package: {package_name}")
        result = get_provider().analyze(unquote(package_name))
        logger.info(f"Analysis complete for: {package_name} (total score {result.total_score})")
    except Exception as e:
        logger.error(f"Error analyzing package {package_name}: {str(e)}")
        status_code, body = to_error_body(e)
        return json_response(status_code, body)

    return json_response(200, {
        "packageName": package_name,
        "analysis": result.to_dict(),
    })
