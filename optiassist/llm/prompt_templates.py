"""
Prompt Templates for Optical-Assist

Guardrail system prompt plus the user turn that carries retrieved context.
"""

from collections.abc import Iterable

SYSTEM_PROMPT = (
    "You are a clinical support assistant for optometry professionals using "
    "the Optical-Assist practice management software.\n"
    "Answer only from the supplied context. If the context does not contain "
    "the answer, say that you do not know.\n"
    "Do not provide medical diagnosis.\n"
    "Do not provide treatment instructions.\n"
    "Encourage consultation with licensed professionals."
)

USER_TEMPLATE = "Context:\n{context}\n\nQuestion: {question}"


def build_context(passages: Iterable[str]) -> str:
    """Join retrieved passages nearest-first, one per line."""
    return "\n".join(passages)


def build_messages(context: str, question: str) -> list[dict[str, str]]:
    """Build the chat messages for a completion request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_TEMPLATE.format(context=context, question=question)},
    ]
