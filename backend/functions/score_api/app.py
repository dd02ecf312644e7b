# backend/functions/score_api/app.py

import os
import logging

from functions.score_api.renderer import render_badge, render_error_badge
from shared.display import build_pillar_breakdown
from shared.errors import ValidationError, badge_message, to_error_body
from shared.providers import DELEGATED, build_provider
from shared.responses import (
    ERROR_SVG_CACHE_SECONDS,
    get_http_method,
    get_query_param,
    is_preflight,
    json_response,
    preflight_response,
    svg_response,
    text_response,
)

logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

MISSING_PACKAGE = "Missing package parameter"

# Built on first use and reused while the container stays warm
_provider = None


def get_provider():
    global _provider
    if _provider is None:
        _provider = build_provider(os.environ.get('ANALYSIS_PROVIDER', DELEGATED))
    return _provider


def handle_get_badge(event):
    """GET /badge?package=<name>: always answers with renderable SVG once a package is named."""
    package_name = get_query_param(event, 'package')
    if not package_name:
        return text_response(400, MISSING_PACKAGE)

    try:
        result = get_provider().analyze(package_name)
        logger.info(f"Rendering badge for {package_name}: total={result.total_score}, pillars={len(result.pillar_scores)}")
        return svg_response(render_badge(package_name, result.total_score, result.pillar_scores))
    except Exception as e:
        logger.error(f"Badge API error for {package_name}: {e}")
        return svg_response(render_error_badge(badge_message(e)), cache_max_age=ERROR_SVG_CACHE_SECONDS)


def handle_get_analysis(event):
    """GET /analysis?package=<name>: the interactive view's payload."""
    package_name = get_query_param(event, 'package')
    if not package_name:
        status_code, body = to_error_body(ValidationError(MISSING_PACKAGE))
        return json_response(status_code, body)

    try:
        result = get_provider().analyze(package_name)
    except Exception as e:
        logger.error(f"Analysis API error for {package_name}: {e}")
        status_code, body = to_error_body(e)
        return json_response(status_code, body)

    return json_response(200, {
        "packageName": package_name,
        "analysis": result.to_dict(),
        "pillars": build_pillar_breakdown(result),
    })


def get_route(event) -> str:
    """
    Resolves the route for REST (v1) and HTTP API (v2) events. v2 raw paths carry the
    stage name when it is not $default, so only their last segment is matched.
    """
    if event.get('resource'):
        return event['resource']
    route_key = event.get('routeKey') or ''
    if ' ' in route_key:
        return route_key.split(' ', 1)[1]
    raw_path = (event.get('rawPath') or '').rstrip('/')
    return '/' + raw_path.rsplit('/', 1)[-1] if raw_path else ''


def lambda_handler(event, context):
    """Main Router."""
    if is_preflight(event):
        return preflight_response()

    http_method = get_http_method(event)
    resource = get_route(event)
    logger.info(f"API Request | Method: {http_method} | Path: {resource}")

    if resource == '/badge' and http_method == 'GET':
        return handle_get_badge(event)
    elif resource == '/analysis' and http_method == 'GET':
        return handle_get_analysis(event)

    return json_response(404, {"error": "Route not found"})
