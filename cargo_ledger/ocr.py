from __future__ import annotations

import logging
from io import BytesIO
from typing import Any, Optional

import pdfplumber


logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF-"


def looks_like_pdf(data: bytes, content_type: Optional[str] = None) -> bool:
    if content_type and "pdf" in content_type.lower():
        return True
    return data[: len(_PDF_MAGIC)] == _PDF_MAGIC


def vision_text(image_bytes: bytes, client: Any = None) -> str:
    """OCR a photographed shipping invoice with Cloud Vision document_text_detection."""
    from google.cloud import vision  # type: ignore[import]

    client = client or vision.ImageAnnotatorClient()
    response = client.document_text_detection(image=vision.Image(content=image_bytes))
    if response.error.message:
        raise RuntimeError(f"Cloud Vision error: {response.error.message}")
    return response.full_text_annotation.text or ""


def pdf_text(pdf_bytes: bytes) -> str:
    """Text layer of a scanned-and-OCR'd or exported PDF invoice."""
    pages: list[str] = []
    with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
        for page in pdf.pages:
            text = (page.extract_text() or "").replace("\u00a0", " ")
            if text:
                pages.append(text)
    return "\n".join(pages).strip()


def document_text(data: bytes, content_type: Optional[str] = None, client: Any = None) -> str:
    if not data:
        return ""
    if looks_like_pdf(data, content_type):
        text = pdf_text(data)
        if not text:
            logger.warning("PDF upload has no text layer")
        return text
    return vision_text(data, client=client)
