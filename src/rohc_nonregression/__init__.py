"""ROHC non-regression harness: two cross-wired codec pipelines over a capture."""

__version__ = "0.1.0"

from .compare import compare
from .config import RunConfig
from .models import CidMode, Frame, FrameVerdict, RunResult, RunTally
from .orchestrator import DualFlowOrchestrator
from .pipeline import CodecPipeline

__all__ = [
    "CidMode",
    "CodecPipeline",
    "DualFlowOrchestrator",
    "Frame",
    "FrameVerdict",
    "RunConfig",
    "RunResult",
    "RunTally",
    "compare",
]
