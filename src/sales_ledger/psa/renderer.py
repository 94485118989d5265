#!/usr/bin/env python3
"""
Sale Email Renderer Module

Renders one message into a portable PDF: a fixed A4 layout with an escaped
header block above the original HTML body, with every resolvable image
inlined as a data URI.

Rendering and writing are separate steps. render() only produces bytes; the
ingestor writes them and only then marks the message as rendered.
"""

import html as html_lib
import io
import logging
import re
from collections.abc import Callable

from xhtml2pdf import pisa

from ..core.errors import RenderError
from .images import RemoteImageFetcher, inline_cid_images, inline_remote_images
from .models import RenderedDocument, SaleMessage
from .parser import find_certification_number, message_plain_text

logger = logging.getLogger(__name__)

FORBIDDEN_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|#!]+')
MAX_SUBJECT_CHARS = 120

PAGE_STYLE = (
    "@page{size:A4;margin:18mm;}"
    "body{font-family:Arial,sans-serif;font-size:12px;color:#222;}"
    ".meta{border-bottom:1px solid #ddd;margin-bottom:12px;padding-bottom:8px;}"
    ".meta div{margin:2px 0;}"
    ".subject{font-size:16px;font-weight:700;margin-bottom:6px;}"
    "img{max-width:100%;height:auto;}"
    "a{color:#1155cc;text-decoration:none;}"
    "table{border-collapse:collapse;}"
    "td,th{border:1px solid #e5e5e5;padding:4px 6px;vertical-align:top;}"
    ".email-body,p,table,div{page-break-inside:avoid;}"
)

HtmlToPdf = Callable[[str], bytes]


def escape(value: str | None) -> str:
    """Escape &, < and > so message content cannot inject markup."""
    return html_lib.escape(str(value or ""), quote=False)


def html_to_pdf(document_html: str) -> bytes:
    """
    Convert an HTML document to PDF bytes with xhtml2pdf.

    Raises:
        RenderError: If conversion reports errors
    """
    buffer = io.BytesIO()
    status = pisa.CreatePDF(src=document_html, dest=buffer, encoding="utf-8")
    if status.err:
        raise RenderError(f"PDF conversion reported {status.err} error(s)")
    return buffer.getvalue()


def build_wrapper_html(message: SaleMessage, body_html: str) -> str:
    """Wrap a processed body in the fixed header/stylesheet layout."""
    date_text = message.date.strftime("%Y-%m-%d %H:%M") if message.date else ""
    cc_line = f"<div><b>CC:</b> {escape(message.cc)}</div>" if message.cc else ""

    return (
        '<html><head><meta charset="UTF-8" />'
        f"<style>{PAGE_STYLE}</style></head>"
        '<body><div class="meta">'
        f'<div class="subject">{escape(message.subject)}</div>'
        f"<div><b>From:</b> {escape(message.sender)}</div>"
        f"<div><b>To:</b> {escape(message.to)}</div>"
        f"{cc_line}"
        f"<div><b>Date:</b> {escape(date_text)}</div>"
        f"<div><b>Message ID:</b> {escape(message.message_id)}</div>"
        f'</div><div class="email-body">{body_html}</div></body></html>'
    )


def sanitize_subject(subject: str | None) -> str:
    """Replace filesystem-unsafe characters, collapse whitespace, cap length."""
    cleaned = FORBIDDEN_FILENAME_CHARS.sub(" ", subject or "No Subject")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:MAX_SUBJECT_CHARS].strip() or "No Subject"


def build_filename(message: SaleMessage) -> str:
    """
    Derive the PDF filename for a message.

    Examples:
        "2024-03-05 - PSA Sale Cert 12345678.pdf"
        "2024-03-05 - Item Sold 42.pdf"
    """
    date_text = message.date.strftime("%Y-%m-%d") if message.date else "undated"
    cert_number = find_certification_number(message_plain_text(message))
    if cert_number:
        return f"{date_text} - PSA Sale Cert {cert_number}.pdf"
    return f"{date_text} - {sanitize_subject(message.subject)}.pdf"


class SaleEmailRenderer:
    """
    Renders sale messages into portable PDF documents.

    The converter is injectable so callers (and tests) can swap xhtml2pdf for
    any HTML -> PDF callable.
    """

    def __init__(self, fetcher: RemoteImageFetcher | None = None, converter: HtmlToPdf | None = None):
        self.fetcher = fetcher or RemoteImageFetcher()
        self.converter = converter or html_to_pdf

    def render_html(self, message: SaleMessage) -> tuple[str, list]:
        """
        Build the wrapper HTML with all resolvable images inlined.

        Returns:
            (document_html, image_resolutions)
        """
        body_html = message.html_body or f"<pre>{escape(message.text_body)}</pre>"
        cid_result = inline_cid_images(body_html, message.attachments)
        remote_result = inline_remote_images(cid_result.html, self.fetcher)

        resolutions = cid_result.resolutions + remote_result.resolutions
        return build_wrapper_html(message, remote_result.html), resolutions

    def render(self, message: SaleMessage) -> RenderedDocument:
        """
        Render one message to PDF.

        Args:
            message: Message to render

        Returns:
            RenderedDocument with PDF bytes and filename

        Raises:
            RenderError: If PDF conversion fails
        """
        document_html, resolutions = self.render_html(message)

        try:
            content = self.converter(document_html)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"PDF conversion failed for {message.message_id}: {e}") from e

        unresolved = sum(1 for r in resolutions if not r.resolved)
        if unresolved:
            logger.info(f"Rendered {message.message_id} with {unresolved} unresolved image(s)")

        return RenderedDocument(
            message_id=message.message_id,
            filename=build_filename(message),
            content=content,
            html=document_html,
            image_resolutions=tuple(resolutions),
        )
