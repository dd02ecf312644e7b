import os
import logging
import importlib
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional

from shared.errors import ConfigError, UpstreamError
from shared.invoker import AnalysisInvoker
from shared.models import AnalysisResult, TokenSpec
from shared.outputs import load_deployment_outputs
from shared.tokens import TOKEN_SPECS, TokenCache, TokenProvisioner

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

LOCAL = 'local'
DELEGATED = 'delegated'


class AnalysisProvider(ABC):
    """Produces an AnalysisResult for a package name, wherever the engine happens to run."""

    @abstractmethod
    def analyze(self, package_name: str) -> AnalysisResult:
        raise NotImplementedError


class LocalAnalysisProvider(AnalysisProvider):
    """Runs the analysis engine in-process after exporting its tokens into the environment."""

    def __init__(self, engine: Callable[[str], Any], provisioner: TokenProvisioner,
                 token_specs: Iterable[TokenSpec] = TOKEN_SPECS):
        self.engine = engine
        self.provisioner = provisioner
        self.token_specs = list(token_specs)

    def analyze(self, package_name: str) -> AnalysisResult:
        self.provisioner.ensure_tokens_loaded(self.token_specs)

        raw = self.engine(package_name)
        result = raw if isinstance(raw, AnalysisResult) else AnalysisResult.from_dict(raw)
        try:
            result.validate()
        except ValueError as e:
            raise UpstreamError("Analysis engine returned an invalid result", kind="engine", detail=str(e)) from e
        return result


class DelegatedAnalysisProvider(AnalysisProvider):
    """Delegates to the deployed analysis function through anonymous credentials."""

    def __init__(self, invoker: AnalysisInvoker):
        self.invoker = invoker

    def analyze(self, package_name: str) -> AnalysisResult:
        return self.invoker.invoke(package_name)


def load_engine(import_path: Optional[str] = None) -> Callable[[str], Any]:
    """Resolves the engine callable from a 'package.module:function' path (ANALYSIS_ENGINE)."""
    import_path = import_path or os.environ.get('ANALYSIS_ENGINE')
    if not import_path:
        raise ConfigError("Analysis engine is not configured (set ANALYSIS_ENGINE)")

    module_name, _, attr = import_path.partition(':')
    try:
        module = importlib.import_module(module_name)
        engine = getattr(module, attr or 'analyze_package')
    except (ImportError, AttributeError) as e:
        logger.error(f"Failed to load analysis engine {import_path}: {e}")
        raise ConfigError(f"Analysis engine {import_path} could not be loaded", detail=str(e)) from e

    if not callable(engine):
        raise ConfigError(f"Analysis engine {import_path} is not callable")
    return engine


def build_provider(mode: Optional[str] = None, token_cache: Optional[TokenCache] = None) -> AnalysisProvider:
    """
    Builds the provider for the current deployment.

    Args:
        mode: 'local' or 'delegated'; defaults to the ANALYSIS_PROVIDER environment variable
        token_cache: the process-wide cache handed to the local provider's token provisioner
    """
    mode = (mode or os.environ.get('ANALYSIS_PROVIDER') or DELEGATED).lower()
    logger.info(f"Building {mode} analysis provider")

    if mode == LOCAL:
        provisioner = TokenProvisioner(token_cache if token_cache is not None else TokenCache())
        return LocalAnalysisProvider(load_engine(), provisioner)
    if mode == DELEGATED:
        return DelegatedAnalysisProvider(AnalysisInvoker(load_deployment_outputs()))
    raise ConfigError(f"Unknown analysis provider '{mode}'")
