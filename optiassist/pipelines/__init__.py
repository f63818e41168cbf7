"""
Optical-Assist Pipelines

Ingestion (upload -> chunks), bulk seeding, and retrieval-augmented answering.
"""

from optiassist.pipelines.answering import (
    AnswerResult,
    AnsweringPipeline,
    AskState,
    DatabaseQueryLogger,
    NullQueryLogger,
    QueryLogger,
)
from optiassist.pipelines.ingestion import IngestionPipeline, IngestResult, compute_file_hash
from optiassist.pipelines.seed import SEED_DOCUMENTS, seed_corpus

__all__ = [
    "AnswerResult",
    "AnsweringPipeline",
    "AskState",
    "DatabaseQueryLogger",
    "IngestResult",
    "IngestionPipeline",
    "NullQueryLogger",
    "QueryLogger",
    "SEED_DOCUMENTS",
    "compute_file_hash",
    "seed_corpus",
]
