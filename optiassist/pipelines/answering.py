"""
Retrieval-Augmented Answering Pipeline for Optical-Assist

Per request:

    RECEIVED -> PII_CHECKED -> EMBEDDED -> RETRIEVED -> COMPLETED -> ANSWERED
                     |
                     +-> REJECTED (PII found; no model calls are made)

The PII policy and the query logger are strategies chosen by configuration,
so detect-vs-mask and logging-vs-not are one pipeline rather than separate
service variants.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from optiassist.llm.prompt_templates import build_context, build_messages
from optiassist.observability.metrics import record_query_log_failure
from optiassist.security.pii import REFUSAL_MESSAGE, DetectPolicy, PIIPolicy

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_QUERY_LOG_TIMEOUT = 2.0


class AskState(str, enum.Enum):
    RECEIVED = "received"
    PII_CHECKED = "pii_checked"
    EMBEDDED = "embedded"
    RETRIEVED = "retrieved"
    COMPLETED = "completed"
    ANSWERED = "answered"
    REJECTED = "rejected"


@dataclass
class AnswerResult:
    """Result of one question through the pipeline."""

    type: str
    answer: str
    state: AskState
    latency_ms: int | None = None
    question: str | None = None
    context: list[str] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)

    @property
    def refused(self) -> bool:
        return self.state is AskState.REJECTED


# ============================================
# Query Loggers
# ============================================


class QueryLogger:
    """Side channel recording answered questions and latency."""

    async def record(self, question: str, latency_ms: int) -> None:
        raise NotImplementedError


class NullQueryLogger(QueryLogger):
    async def record(self, question: str, latency_ms: int) -> None:
        return None


class DatabaseQueryLogger(QueryLogger):
    """Writes a row to the ``logging`` table through the store."""

    def __init__(self, store) -> None:
        self.store = store

    async def record(self, question: str, latency_ms: int) -> None:
        await self.store.log_query(question, latency_ms)


# ============================================
# Pipeline
# ============================================


class AnsweringPipeline:
    """PII gate, embed, retrieve, complete."""

    def __init__(
        self,
        store,
        embedder,
        completion_client,
        pii_policy: PIIPolicy | None = None,
        query_logger: QueryLogger | None = None,
        top_k: int = DEFAULT_TOP_K,
        retrieval_source: str = "chunks",
        query_log_timeout: float = DEFAULT_QUERY_LOG_TIMEOUT,
    ):
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        if retrieval_source not in ("chunks", "seed"):
            raise ValueError(f"Unknown retrieval source: {retrieval_source}")
        self.store = store
        self.embedder = embedder
        self.completion_client = completion_client
        self.pii_policy = pii_policy or DetectPolicy()
        self.query_logger = query_logger or NullQueryLogger()
        self.top_k = top_k
        self.retrieval_source = retrieval_source
        self.query_log_timeout = query_log_timeout

    async def _retrieve(self, vector: list[float]):
        if self.retrieval_source == "seed":
            return await self.store.find_similar_seed(vector, self.top_k)
        return await self.store.find_similar(vector, self.top_k)

    async def record_query(self, result: AnswerResult) -> None:
        """Write the query log entry for an answered question.

        Bounded by its own timeout and never raises, so a slow or broken
        log table cannot change an answer that has already been produced.
        Refusals are not logged.
        """
        if result.refused or result.latency_ms is None:
            return
        try:
            await asyncio.wait_for(
                self.query_logger.record(result.question, result.latency_ms),
                timeout=self.query_log_timeout,
            )
        except asyncio.TimeoutError:
            record_query_log_failure()
            logger.warning("Query logging timed out after %.1fs", self.query_log_timeout)
        except Exception as e:
            record_query_log_failure()
            logger.warning("Query logging failed: %s", e)

    async def run(self, question: str) -> AnswerResult:
        """Answer a question and record it in the query log."""
        result = await self.answer(question)
        await self.record_query(result)
        return result

    async def answer(self, question: str) -> AnswerResult:
        """Answer a question from retrieved context, or refuse it."""
        steps: list[dict[str, Any]] = []
        state = AskState.RECEIVED

        # --- PII gate ---
        step_start = time.perf_counter()
        decision = self.pii_policy.apply(question)
        steps.append(
            {
                "name": "pii_check",
                "duration_ms": round((time.perf_counter() - step_start) * 1000, 1),
                "detail": self.pii_policy.mode,
            }
        )
        if not decision.allowed:
            return AnswerResult(
                type="refusal",
                answer=REFUSAL_MESSAGE,
                state=AskState.REJECTED,
                steps=steps,
            )
        state = AskState.PII_CHECKED
        question = decision.text

        # --- Embedding ---
        start_time = time.perf_counter()
        query_vector = await self.embedder.embed(question)
        state = AskState.EMBEDDED
        steps.append(
            {
                "name": "embed",
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 1),
                "detail": "Generated query embedding",
            }
        )

        # --- Retrieval ---
        step_start = time.perf_counter()
        results = await self._retrieve(query_vector)
        passages = [r.content for r in results]
        state = AskState.RETRIEVED
        steps.append(
            {
                "name": "retrieve",
                "duration_ms": round((time.perf_counter() - step_start) * 1000, 1),
                "detail": f"{len(passages)} passages from {self.retrieval_source}",
            }
        )

        # --- Completion ---
        step_start = time.perf_counter()
        messages = build_messages(build_context(passages), question)
        answer = await self.completion_client.complete(messages)
        state = AskState.COMPLETED
        latency_ms = int((time.perf_counter() - start_time) * 1000)
        steps.append(
            {
                "name": "complete",
                "duration_ms": round((time.perf_counter() - step_start) * 1000, 1),
                "detail": "Generated answer",
            }
        )

        state = AskState.ANSWERED
        logger.info(
            "Answered question in %dms using %d passages", latency_ms, len(passages)
        )
        return AnswerResult(
            type="success",
            answer=answer,
            state=state,
            latency_ms=latency_ms,
            question=question,
            context=passages,
            steps=steps,
        )
