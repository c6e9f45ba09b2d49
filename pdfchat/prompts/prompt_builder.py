# pdfchat/prompts/prompt_builder.py

from typing import List

from pdfchat.prompts.system_prompts import ANSWER_INSTRUCTION


def build_document_prompt(
    question: str,
    context: str,
    pages: List[int],
) -> str:
    """
    Build the user prompt for one question.

    context is passed through as is; pages are the citation pages of the
    retrieved chunks, in rank order. The question is kept verbatim.
    """

    page_line = ", ".join(str(page) for page in pages) if pages else "none"

    return (
        f"Context: {context}\n"
        f"Pages (in order of relevance): {page_line}\n\n"
        f"Question: {question}\n"
        f"{ANSWER_INSTRUCTION}"
    )
