"""PaperArch: paper-to-architecture-diagram workbench over Gemini."""

from paperarch.errors import (
    AnalysisError,
    CancelledError,
    ConfigurationError,
    GatewayError,
    PaperArchError,
    RefineError,
    RenderError,
    RequestTimeoutError,
    ValidationError,
)
from paperarch.gateway import Gateway
from paperarch.models import (
    Conference,
    Document,
    HistoryItem,
    PaperAnalysis,
    Stage,
    WorkflowState,
    load_document,
)
from paperarch.prompts import (
    build_analysis_prompt,
    build_generation_prompt,
    build_refinement_prompt,
)
from paperarch.workflow import Workbench

__version__ = "0.1.0"

__all__ = [
    "AnalysisError",
    "CancelledError",
    "ConfigurationError",
    "Conference",
    "Document",
    "Gateway",
    "GatewayError",
    "HistoryItem",
    "PaperAnalysis",
    "PaperArchError",
    "RefineError",
    "RenderError",
    "RequestTimeoutError",
    "Stage",
    "ValidationError",
    "Workbench",
    "WorkflowState",
    "build_analysis_prompt",
    "build_generation_prompt",
    "build_refinement_prompt",
    "load_document",
]
