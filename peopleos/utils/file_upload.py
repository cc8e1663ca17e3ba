"""
Resume upload parsing.

PDF (PyPDF2), Word .docx (python-docx) and plain text are accepted, up
to 5MB. The extracted text is stored with the candidate and fed to the
candidate analysis prompt.
"""

import io
import logging
import os
import re
from typing import Callable, Dict, Tuple

from docx import Document
from fastapi import HTTPException, UploadFile
from PyPDF2 import PdfReader
from PyPDF2.errors import PyPdfError

logger = logging.getLogger(__name__)

MAX_RESUME_MB = 5
MAX_RESUME_BYTES = MAX_RESUME_MB * 1024 * 1024
EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def extract_from_pdf(content: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(content))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError, OSError) as e:
        logger.warning(f"Unreadable PDF resume: {e}")
        raise HTTPException(status_code=400, detail="Could not read the PDF file")
    return "\n\n".join(p for p in pages if p.strip())


def extract_from_docx(content: bytes) -> str:
    """Paragraphs, then each table row as 'cell | cell'."""
    try:
        document = Document(io.BytesIO(content))
    except Exception as e:
        # python-docx raises zip, xml and package errors with no shared base class
        logger.warning(f"Unreadable DOCX resume: {e}")
        raise HTTPException(status_code=400, detail="Could not read the Word file")

    lines = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


def extract_from_txt(content: bytes) -> str:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        # latin-1 maps every byte, so this cannot fail
        return content.decode("latin-1")


EXTRACTORS: Dict[str, Callable[[bytes], str]] = {
    ".pdf": extract_from_pdf,
    ".docx": extract_from_docx,
    ".txt": extract_from_txt,
}


def clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\x00", "")
    return EXTRA_BLANK_LINES.sub("\n\n", text).strip()


async def extract_text_from_file(file: UploadFile) -> Tuple[str, str]:
    """
    Read an uploaded resume and return (text, filename).

    Raises 400 for a missing name, an unsupported type or an unreadable
    or empty file, and 413 when the upload is over the size limit.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = os.path.splitext(file.filename)[1].lower()
    extractor = EXTRACTORS.get(ext)
    if extractor is None:
        raise HTTPException(status_code=400, detail=f"Unsupported file type '{ext}'. Allowed: PDF, DOCX, TXT")

    content = await file.read()
    if len(content) > MAX_RESUME_BYTES:
        raise HTTPException(status_code=413, detail=f"File too large. Maximum size: {MAX_RESUME_MB}MB")

    text = clean_text(extractor(content))
    if not text:
        raise HTTPException(status_code=400, detail="No text could be extracted from the file")

    logger.debug(f"Extracted {len(text)} characters from {file.filename}")
    return text, file.filename
