"""Scanners package - signature and anchor based detection.

This package provides:
- packages: npm, pip and Swift manifest scanners
- infrastructure: deployment platform, container and CI detection
- service_calls: line-level calls to known external services
- llm_tracer: anchor-based AI provider call tracing
- data_flow: frontend -> API -> database connections
- prompts: prompt definition locations and prompt usage
"""

from .base import FileSet, SourceFile, load_project_files
from .data_flow import scan_data_flow
from .infrastructure import scan_infrastructure
from .llm_tracer import LLMTraceResult, trace_llm_calls
from .packages import detect_package_managers, scan_npm_packages, scan_pip_packages, scan_swift_packages
from .prompts import link_prompt_usage, scan_prompt_locations
from .service_calls import scan_service_calls

__all__ = [
    "FileSet",
    "SourceFile",
    "load_project_files",
    "scan_data_flow",
    "scan_infrastructure",
    "LLMTraceResult",
    "trace_llm_calls",
    "detect_package_managers",
    "scan_npm_packages",
    "scan_pip_packages",
    "scan_swift_packages",
    "link_prompt_usage",
    "scan_prompt_locations",
    "scan_service_calls",
]
