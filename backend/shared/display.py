import re
from typing import Any, Dict, List

from shared.models import AnalysisResult


def convert_to_display_name(signal_name: str) -> str:
    """Turns an engine signal key like 'docs_hasReadme' into 'Docs - has Readme'."""
    name = signal_name.replace('_', ' - ')
    name = re.sub(r'([A-Z])', r' \1', name)
    name = name[:1].upper() + name[1:]
    return re.sub(r'\s+', ' ', name).strip()


def build_pillar_breakdown(result: AnalysisResult) -> List[Dict[str, Any]]:
    """
    Builds one row per pillar, in pillar order, with its signals ready for display.
    Signals without a weight show 0%.
    """
    signal_scores = result.signal_scores or {}
    signal_weights = result.signal_weights or {}

    pillars = []
    for pillar, score in result.pillar_scores.items():
        weights = signal_weights.get(pillar) or {}
        signals = [
            {
                "name": name,
                "displayName": convert_to_display_name(name),
                "score": signal_score,
                "weight": weights.get(name) or 0,
            }
            for name, signal_score in (signal_scores.get(pillar) or {}).items()
        ]
        pillars.append({"name": pillar, "score": score, "signals": signals})
    return pillars
