from dataclasses import dataclass, field
from typing import Dict, Optional, Any


@dataclass
class AnalysisResult:
    package_name: str
    version: str
    total_score: int
    pillar_scores: Dict[str, int] = field(default_factory=dict)
    signal_scores: Optional[Dict[str, Dict[str, int]]] = None
    signal_weights: Optional[Dict[str, Dict[str, int]]] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'AnalysisResult':
        """Builds a result from the engine's wire format (camelCase keys)."""
        return cls(
            package_name=data.get('packageName', ''),
            version=data.get('version', ''),
            total_score=data.get('totalScore', 0),
            pillar_scores=dict(data.get('pillarScores') or {}),
            signal_scores=data.get('signalScores'),
            signal_weights=data.get('signalWeights'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "packageName": self.package_name,
            "version": self.version,
            "totalScore": self.total_score,
            "pillarScores": dict(self.pillar_scores),
        }
        # Breakdowns are optional on the wire; only emit what the engine sent
        if self.signal_scores is not None:
            data["signalScores"] = self.signal_scores
        if self.signal_weights is not None:
            data["signalWeights"] = self.signal_weights
        return data

    def validate(self) -> None:
        """
        Checks the score invariants: every score in [0, 100] and at least one pillar.
        Raises ValueError describing the first violation found.
        """
        if not self.pillar_scores:
            raise ValueError(f"Analysis for {self.package_name} has no pillar scores")

        _check_score("totalScore", self.total_score)
        for pillar, score in self.pillar_scores.items():
            _check_score(f"pillarScores.{pillar}", score)
        for pillar, signals in (self.signal_scores or {}).items():
            for signal, score in signals.items():
                _check_score(f"signalScores.{pillar}.{signal}", score)


def _check_score(label: str, score: Any) -> None:
    if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
        raise ValueError(f"{label} must be an integer in [0, 100], got {score!r}")


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int

    def to_rgb(self) -> str:
        return f"rgb({self.r}, {self.g}, {self.b})"


@dataclass(frozen=True)
class TokenSpec:
    """
    Declares one secret the analysis engine needs.

    `secret_name` doubles as the environment variable the engine reads the token from,
    while `env_var_for_secret_name` names the variable holding the secret's storage name.
    """
    logical_id: str
    secret_name: str
    env_var_for_secret_name: str

    @property
    def token_env_var(self) -> str:
        return self.secret_name


@dataclass(frozen=True)
class Credentials:
    access_key_id: str = field(repr=False)
    secret_access_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)
    expiration: Optional[Any] = None


@dataclass(frozen=True)
class DeploymentOutputs:
    region: Optional[str]
    identity_pool_id: Optional[str]
    analyze_function_arn: Optional[str]
