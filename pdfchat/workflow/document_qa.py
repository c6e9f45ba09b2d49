# pdfchat/workflow/document_qa.py
import logging
import time
from typing import Dict, List, Tuple

from pdfchat.config import NO_CONTEXT_SENTINEL, TOP_K
from pdfchat.errors import DimensionMismatch, InvalidArgument, SessionNotFound
from pdfchat.memory.sessions import Session
from pdfchat.prompts.prompt_builder import build_document_prompt

logger = logging.getLogger(__name__)


def assemble_context(session: Session, hits: List[Tuple[int, float]]) -> Tuple[str, List[int]]:
    """
    Turn ranked hits into (context, citations).

    Hits pointing outside the session's chunks are dropped. Order is
    rank order and repeated pages are kept.
    """

    valid = [idx for idx, _ in hits if 0 <= idx < len(session.chunks)]

    if len(valid) != len(hits):
        logger.error(
            "Index returned out-of-range chunk positions",
            extra={
                "session_id": session.session_id,
                "dropped": [idx for idx, _ in hits if idx not in valid],
                "chunks": len(session.chunks),
            },
        )

    if not valid:
        return NO_CONTEXT_SENTINEL, []

    context = "\n".join(session.chunks[idx].text for idx in valid)
    citations = [session.citations[idx] for idx in valid]

    return context, citations


async def answer_question(
    question: str,
    session_id: str,
    sessions,
    embedder,
    llm_client,
    top_k: int = TOP_K,
) -> Dict:
    """
    Answer a question against one uploaded document, with page citations.

    Raises SessionNotFound before any model call when the session is
    unknown or expired. Upstream failures propagate as
    EmbedderUnavailable / CompletionUnavailable; nothing is retried here.
    """

    if not session_id or not session_id.strip():
        raise InvalidArgument("session_id is required")

    if not question or not question.strip():
        raise InvalidArgument("question is required")

    session = sessions.get(session_id)

    if session is None:
        logger.warning("Session not found", extra={"session_id": session_id})
        raise SessionNotFound()

    start = time.time()

    query_vector = await embedder.embed(question)

    try:
        hits = session.index.search(query_vector, top_k)
    except DimensionMismatch as e:
        # A broken session must not fail the request outright
        logger.error(
            "Query does not match session index",
            extra={"session_id": session_id, "error": str(e)},
        )
        hits = []

    context, citations = assemble_context(session, hits)

    prompt = build_document_prompt(question, context, citations)

    text = await llm_client.generate(prompt)

    sessions.touch(session_id)

    logger.info(
        "Question answered",
        extra={
            "session_id": session_id,
            "sources_used": len(citations),
            "top_score": round(hits[0][1], 4) if hits else None,
            "latency_seconds": round(time.time() - start, 3),
        },
    )

    return {
        "session_id": session_id,
        "text": text,
        "citations": citations,
    }
