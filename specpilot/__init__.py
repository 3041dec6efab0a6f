"""
SpecPilot - static feedback for layered Python web services.

Traces entry handlers into the services they call, scores complexity,
spots loop-bound fetches, infers representative exceptions and synthesizes
minimal request payloads, all without running the analyzed code.
"""

__version__ = "0.3.0"

from specpilot.config import DEFAULT_CONFIG, DEFAULT_EXCLUDE
from specpilot.engine import AnalysisEngine

__all__ = [
    "AnalysisEngine",
    "DEFAULT_CONFIG",
    "DEFAULT_EXCLUDE",
    "__version__",
]
