"""Energy-based activity range detection over ffmpeg diagnostics."""

from .errors import AnalysisError, ToolError
from .orchestrator import AnalysisOrchestrator
from .types import AnalysisConfig, AnalysisMethod, AnalysisResult, Interval, Sample

__all__ = [
    "AnalysisConfig",
    "AnalysisError",
    "AnalysisMethod",
    "AnalysisOrchestrator",
    "AnalysisResult",
    "Interval",
    "Sample",
    "ToolError",
]
