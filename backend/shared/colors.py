import math
from typing import Tuple

from shared.models import Color

# (band minimum, band width, start color, end color), scanned from the highest minimum
SCORE_BANDS = [
    (75, 25, Color(132, 204, 22), Color(0, 255, 0)),
    (50, 25, Color(239, 68, 68), Color(132, 204, 22)),
    (0, 50, Color(185, 28, 28), Color(239, 68, 68)),
]

DARK_FACTORS = (0.8, 0.85, 0.8)


def _round_half_up(value: float) -> int:
    # Browsers round .5 upwards; Python's round() would bank to even
    return int(math.floor(value + 0.5))


def _lerp(start: int, end: int, t: float) -> int:
    return _round_half_up(start + (end - start) * t)


def color_for(score: int) -> Color:
    """
    Maps a score in [0, 100] to its color.
    Scores on a band boundary (50, 75) belong to the higher band.
    """
    minimum, width, start, end = next(
        (band for band in SCORE_BANDS if score >= band[0]), SCORE_BANDS[-1]
    )
    t = (score - minimum) / width
    return Color(
        r=_lerp(start.r, end.r, t),
        g=_lerp(start.g, end.g, t),
        b=_lerp(start.b, end.b, t),
    )


def dark_variant(color: Color) -> Color:
    r_factor, g_factor, b_factor = DARK_FACTORS
    return Color(
        r=_round_half_up(color.r * r_factor),
        g=_round_half_up(color.g * g_factor),
        b=_round_half_up(color.b * b_factor),
    )


def gradient_stops(score: int) -> Tuple[str, str]:
    """Returns the (light, dark) rgb() strings for a score's two-tone gradient."""
    color = color_for(score)
    return color.to_rgb(), dark_variant(color).to_rgb()
