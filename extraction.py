"""
First two steps of the pipeline: PDF bytes -> text -> findings.

Text extraction uses pypdfium2, which is synchronous C code, so it runs
in a worker thread to keep the event loop free. Finding extraction is a
single JSON-mode LLM call over the start of the report text.
"""

import asyncio
import logging

import pypdfium2 as pdfium

from config import REPORT_TEXT_CHAR_LIMIT
from errors import DocumentError
from schemas import ExtractionResponse

logger = logging.getLogger(__name__)

FINDINGS_SYSTEM_PROMPT = (
    "You are an expert real estate assistant specializing in analyzing home "
    "inspection reports. Your task is to extract key information and a "
    "comprehensive list of all potential issues. Respond with a JSON object "
    'with keys "property_address", "inspection_date", and "issues". The '
    '"issues" key should be an array of objects, each with three keys: '
    '"issueId" (a unique, machine-readable slug, e.g., '
    '"eroded-soil-under-patio"), "description" (a human-readable '
    'description), and "context" (the full paragraph from the report that '
    "describes the issue)."
)


def _read_pdf_text(document_buffer):
    doc = pdfium.PdfDocument(document_buffer)
    try:
        pages = []
        for i in range(len(doc)):
            page = doc[i]
            textpage = page.get_textpage()
            pages.append(textpage.get_text_range())
            textpage.close()
            page.close()
    finally:
        doc.close()
    return "\n\n".join(pages)


async def extract_text(document_buffer):
    """Returns the text of every page, joined with blank lines.

    Raises DocumentError for an empty buffer or a file pdfium can't open.
    """
    if not document_buffer:
        raise DocumentError("No PDF buffer provided.")
    try:
        text = await asyncio.to_thread(_read_pdf_text, bytes(document_buffer))
    except pdfium.PdfiumError as exc:
        raise DocumentError(f"Could not read PDF: {exc}") from exc
    logger.info("Extracted %d chars of text from PDF", len(text))
    return text


def build_findings_prompt(report_text, char_limit=REPORT_TEXT_CHAR_LIMIT):
    # only the start of the report goes in; long reports would blow
    # past the model's input budget and the summary pages come first anyway
    return (
        "Please analyze the following home inspection report text and extract "
        "the property address, inspection date, and a list of all identified "
        "issues.\n\n"
        "Report Text:\n"
        '"""\n'
        f"{report_text[:char_limit]}\n"
        '"""'
    )


async def extract_findings(report_text, llm, char_limit=REPORT_TEXT_CHAR_LIMIT):
    """Asks the LLM for the address, date and issue list.

    Returns an ExtractionResponse; call to_findings() on it for the
    deduplicated Finding list. Raises InferenceError on any LLM failure.
    """
    return await llm.complete_json(
        FINDINGS_SYSTEM_PROMPT,
        build_findings_prompt(report_text, char_limit),
        ExtractionResponse,
    )
