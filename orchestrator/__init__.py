"""
Orchestration package for coordinating a space export run.

This package sequences the run phases: Discover → Export → Report. It owns
the resume logic (skipping pages already in the export history) and the run
report written next to the exported files.
"""

from .export_orchestrator import ExportOrchestrator
from .export_report import ExportReport

__all__ = [
    'ExportOrchestrator',
    'ExportReport'
]
