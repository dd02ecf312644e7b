import json
from typing import Any, Dict, Optional

from shared.errors import ValidationError

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token',
    'Access-Control-Allow-Methods': 'OPTIONS,POST,GET',
}

SVG_CACHE_SECONDS = 3600
ERROR_SVG_CACHE_SECONDS = 300


def get_http_method(event: dict) -> Optional[str]:
    """Reads the method from HTTP API / function URL events, falling back to REST API events."""
    http = (event.get('requestContext') or {}).get('http') or {}
    method = http.get('method') or event.get('httpMethod')
    return method.upper() if method else None


def is_preflight(event: dict) -> bool:
    return get_http_method(event) == 'OPTIONS'


def get_query_param(event: dict, name: str) -> Optional[str]:
    query_params = event.get('queryStringParameters') or {}
    value = query_params.get(name)
    return value if value else None


def get_body_field(event: dict, name: str) -> Any:
    """Returns a field of the JSON request body, or None when there is no body."""
    body = event.get('body')
    if not body:
        return None
    if isinstance(body, dict):
        return body.get(name)
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Request body is not valid JSON: {e}")
    if not isinstance(parsed, dict):
        raise ValidationError("Request body must be a JSON object.")
    return parsed.get(name)


def preflight_response() -> dict:
    return {"statusCode": 200, "headers": dict(CORS_HEADERS), "body": ""}


def json_response(status_code: int, payload: Dict[str, Any]) -> dict:
    return {
        "statusCode": status_code,
        "headers": {**CORS_HEADERS, "Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def text_response(status_code: int, text: str) -> dict:
    return {
        "statusCode": status_code,
        "headers": {**CORS_HEADERS, "Content-Type": "text/plain"},
        "body": text,
    }


def svg_response(svg_body: str, cache_max_age: int = SVG_CACHE_SECONDS) -> dict:
    # Badge consumers are <img> tags, so every SVG goes out as a 200
    return {
        "statusCode": 200,
        "headers": {
            **CORS_HEADERS,
            "Content-Type": "image/svg+xml",
            "Cache-Control": f"public, max-age={cache_max_age}",
        },
        "body": svg_body,
        "isBase64Encoded": False,
    }
