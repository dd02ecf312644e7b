# backend/functions/score_api/renderer.py

import re
import math
from typing import Dict
from xml.sax.saxutils import escape

from shared.colors import gradient_stops
from shared.errors import BADGE_MESSAGE_LIMIT, UNKNOWN_ERROR

TOTAL_RADIUS = 36
PILLAR_RADIUS = 20
PILLAR_SPACING = 60
TOTAL_X = 60
FIRST_PILLAR_X = 160
CIRCLE_Y = 60
LABEL_Y = CIRCLE_Y + 50
TITLE_Y = 14
HEIGHT = 122
STROKE_WIDTH = 3

FONT = 'Arial, sans-serif'


def badge_width(pillar_count: int) -> int:
    return 100 + pillar_count * PILLAR_SPACING + 40


# Code points outside the XML 1.0 Char production
INVALID_XML_CHARS = re.compile(r'[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]')


def _text(value) -> str:
    return escape(INVALID_XML_CHARS.sub('', str(value)), {'"': '&quot;'})


def render_circle(x: int, y: int, score: int, radius: int = PILLAR_RADIUS) -> str:
    """
    Draws one progress ring: a static background ring plus an arc whose visible length is
    proportional to the score, starting at 12 o'clock and sweeping clockwise.
    """
    circumference = 2 * math.pi * radius
    offset = circumference * (1 - score / 100)
    light, dark = gradient_stops(score)
    # Ids come from the ring's position so several badges on one page never collide
    gradient_id = f"grad-{x}-{y}"

    return f"""
    <defs>
      <linearGradient id="{gradient_id}" x1="0%" y1="0%" x2="100%" y2="100%">
        <stop offset="0%" style="stop-color:{light};stop-opacity:1" />
        <stop offset="100%" style="stop-color:{dark};stop-opacity:1" />
      </linearGradient>
    </defs>
    <circle cx="{x}" cy="{y}" r="{radius}" fill="none" stroke="#2a2a2a" stroke-width="{STROKE_WIDTH}"/>
    <circle cx="{x}" cy="{y}" r="{radius}" fill="none" stroke="url(#{gradient_id})" stroke-width="{STROKE_WIDTH}"
      stroke-dasharray="{circumference}" stroke-dashoffset="{offset}"
      transform="rotate(-90 {x} {y})" stroke-linecap="round"/>
    <text x="{x}" y="{y + 5}" text-anchor="middle" fill="#e0e0e0" font-family="{FONT}" font-size="14" font-weight="bold">{_text(score)}</text>
  """


def render_badge(package_name: str, total_score: int, pillar_scores: Dict[str, int]) -> str:
    """
    Composes the badge: the total score in a large ring on the left, then one small ring per
    pillar in the order the engine reported them, each labelled beneath with its upper-cased name.
    """
    pillars = list(pillar_scores.items())
    width = badge_width(len(pillars))
    title = _text(package_name)

    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{HEIGHT}" '
        f'style="background: #1a1a1a; border-radius: 8px;">',
        f'<title>{title} score: {_text(total_score)}</title>',
        f'<text x="{TOTAL_X - TOTAL_RADIUS}" y="{TITLE_Y}" fill="#e0e0e0" font-family="{FONT}" '
        f'font-size="11" font-weight="bold">{title}</text>',
        render_circle(TOTAL_X, CIRCLE_Y, total_score, TOTAL_RADIUS),
        f'<text x="{TOTAL_X}" y="{LABEL_Y}" text-anchor="middle" fill="#888" font-family="{FONT}" font-size="10">TOTAL</text>',
    ]

    x = FIRST_PILLAR_X
    for pillar, score in pillars:
        parts.append(render_circle(x, CIRCLE_Y, score, PILLAR_RADIUS))
        parts.append(
            f'<text x="{x}" y="{LABEL_Y}" text-anchor="middle" fill="#888" font-family="{FONT}" '
            f'font-size="9">{_text(pillar.upper())}</text>'
        )
        x += PILLAR_SPACING

    parts.append('</svg>')
    return ''.join(parts)


def render_error_badge(message: str) -> str:
    """Fixed-size badge shown in place of the scores when the analysis cannot be loaded."""
    message = _text((message or UNKNOWN_ERROR)[:BADGE_MESSAGE_LIMIT])
    return f"""
      <svg xmlns="http://www.w3.org/2000/svg" width="500" height="120" style="background: #1a1a1a; border-radius: 8px;">
        <text x="250" y="40" text-anchor="middle" fill="#ff4444" font-family="{FONT}" font-size="16">Error loading package score</text>
        <text x="250" y="70" text-anchor="middle" fill="#888" font-family="{FONT}" font-size="10">{message}</text>
        <text x="250" y="95" text-anchor="middle" fill="#666" font-family="{FONT}" font-size="9">Check the service logs for the full error</text>
      </svg>
    """.strip()
