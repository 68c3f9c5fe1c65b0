"""Source discovery and analysis orchestration."""

from .discovery import discover_source_files, find_source_files, is_binary_file, should_exclude
from .orchestrator import AnalysisOrchestrator, ChunkView, FunctionSummary

__all__ = [
    "AnalysisOrchestrator",
    "ChunkView",
    "FunctionSummary",
    "discover_source_files",
    "find_source_files",
    "is_binary_file",
    "should_exclude",
]
