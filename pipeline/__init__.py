"""Pipeline module sequencing capture output into card content."""

from .models import (
    CardData,
    GeneratedCard,
    PipelineSession,
    Stage,
    StageInfo,
    describe_stage,
)
from .orchestrator import PLACEHOLDER_TRANSCRIPT, PipelineOrchestrator

__all__ = [
    "CardData",
    "GeneratedCard",
    "PipelineSession",
    "Stage",
    "StageInfo",
    "describe_stage",
    "PLACEHOLDER_TRANSCRIPT",
    "PipelineOrchestrator",
]
