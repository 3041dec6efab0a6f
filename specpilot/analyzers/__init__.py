"""
Code analyzers for specpilot.

These analyzers read one class or method through the project cache and
report structural facts: complexity, loop-bound fetches, representative
exceptions, minimal payloads, auth context and API documentation usage.
"""

from specpilot.analyzers.auth import AuthUsageAnalyzer, detect_auth_usage
from specpilot.analyzers.complexity import ComplexityAnalyzer, cyclomatic_complexity
from specpilot.analyzers.exceptions import ExceptionInference, infer_exception
from specpilot.analyzers.loop_calls import detect_loop_bound_remote_calls, is_remote_fetch_name
from specpilot.analyzers.openapi import OpenApiAnalyzer, detect_openapi_usage
from specpilot.analyzers.payload import PayloadSynthesizer, sample_payloads_for_handler
from specpilot.analyzers.service import ResultCache, analyze_method

__all__ = [
    "AuthUsageAnalyzer",
    "ComplexityAnalyzer",
    "ExceptionInference",
    "OpenApiAnalyzer",
    "PayloadSynthesizer",
    "ResultCache",
    "analyze_method",
    "cyclomatic_complexity",
    "detect_auth_usage",
    "detect_loop_bound_remote_calls",
    "detect_openapi_usage",
    "infer_exception",
    "is_remote_fetch_name",
    "sample_payloads_for_handler",
]
