#!/usr/bin/env python3
"""
Image Inlining Module

Turns image references in an HTML email body into self-contained data URIs so
the rendered PDF has no external dependencies.

Two passes:
- Inline images: src="cid:..." references resolved against the message's
  inline attachments
- Remote images: src="https://..." references fetched with hard bounds on URL
  length and response size

Every reference produces an ImageResolution. Unresolvable references are left
byte-identical in the HTML; rendering never fails because of an image.
"""

import base64
import logging
import re

import requests

from .models import ImageResolution, InlineAttachment, InlineResult

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2000
MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"
USER_AGENT = "Mozilla/5.0 (sales-ledger PDF embedder)"

CID_SRC_PATTERN = re.compile(r"""src\s*=\s*(['"])cid:([^'"]+)\1""", re.IGNORECASE)
REMOTE_SRC_PATTERN = re.compile(r"""src\s*=\s*(['"])(https://[^'"]+)\1""", re.IGNORECASE)
IMG_TAG_PATTERN = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
LAZY_SRC_PATTERN = re.compile(r"""\s(data-src|data-original)\s*=\s*(['"])(.*?)\2""", re.IGNORECASE | re.DOTALL)
PLAIN_SRC_PATTERN = re.compile(r"""\ssrc\s*=\s*(['"]).*?\1""", re.IGNORECASE | re.DOTALL)
SRCSET_PATTERN = re.compile(r"""\ssrcset\s*=\s*(['"])[\s\S]*?\1""", re.IGNORECASE)
GOOGLE_PROXY_PATTERN = re.compile(r"googleusercontent\.com/proxy/", re.IGNORECASE)

EXTENSION_CONTENT_TYPES = [
    (re.compile(r"\.png(\?|$)", re.IGNORECASE), "image/png"),
    (re.compile(r"\.jpe?g(\?|$)", re.IGNORECASE), "image/jpeg"),
    (re.compile(r"\.gif(\?|$)", re.IGNORECASE), "image/gif"),
    (re.compile(r"\.webp(\?|$)", re.IGNORECASE), "image/webp"),
]


def normalize_content_id(content_id: str | None) -> str:
    """Strip angle brackets and whitespace, then case-fold."""
    return (content_id or "").replace("<", "").replace(">", "").strip().lower()


def to_data_uri(content_type: str, data: bytes) -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def inline_cid_images(html: str, attachments: list[InlineAttachment]) -> InlineResult:
    """
    Replace src="cid:X" references with data URIs from matching attachments.

    Args:
        html: Email HTML body
        attachments: Inline attachments of the same message

    Returns:
        InlineResult with the rewritten HTML and one resolution per reference
    """
    result = InlineResult(html=html or "")
    if not html:
        return result

    cid_map: dict[str, InlineAttachment] = {}
    for attachment in attachments:
        key = normalize_content_id(attachment.content_id)
        if key:
            cid_map[key] = attachment

    def _replace(match: re.Match) -> str:
        quote, cid = match.group(1), match.group(2)
        attachment = cid_map.get(normalize_content_id(cid))
        if attachment is None:
            result.resolutions.append(ImageResolution(reference=f"cid:{cid}", resolved=False, reason="no_attachment"))
            return match.group(0)

        content_type = attachment.content_type or DEFAULT_CONTENT_TYPE
        result.resolutions.append(
            ImageResolution(reference=f"cid:{cid}", resolved=True, content_type=content_type)
        )
        return f"src={quote}{to_data_uri(content_type, attachment.data)}{quote}"

    result.html = CID_SRC_PATTERN.sub(_replace, html)
    return result


def promote_lazy_sources(html: str) -> str:
    """
    Make data-src / data-original the real src of each <img> tag.

    A placeholder src in the same tag is dropped so the promoted value wins.
    """

    def _rewrite_tag(match: re.Match) -> str:
        tag = match.group(0)
        lazy = LAZY_SRC_PATTERN.search(tag)
        if lazy is None:
            return tag
        tag = PLAIN_SRC_PATTERN.sub("", tag)
        return LAZY_SRC_PATTERN.sub(lambda m: f" src={m.group(2)}{m.group(3)}{m.group(2)}", tag, count=1)

    return IMG_TAG_PATTERN.sub(_rewrite_tag, html)


def strip_srcset(html: str) -> str:
    """Remove responsive-image candidate lists; only one source is embeddable."""
    return SRCSET_PATTERN.sub("", html)


def normalize_proxy_url(url: str) -> str:
    """
    Unwrap a Google image-proxy URL to the original image URL.

    Proxied URLs carry the original after a '#'; other URLs pass through.
    """
    if GOOGLE_PROXY_PATTERN.search(url):
        _, sep, fragment = url.partition("#")
        if sep and fragment:
            return fragment
    return url


def infer_content_type(url: str) -> str:
    """Guess an image content type from the URL's file extension."""
    for pattern, content_type in EXTENSION_CONTENT_TYPES:
        if pattern.search(url):
            return content_type
    return DEFAULT_CONTENT_TYPE


class RemoteImageFetcher:
    """
    Fetches remote images for inlining, under strict resource bounds.

    A fault of any kind resolves to an unresolved ImageResolution; nothing is
    retried within the same pass.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        max_bytes: int = MAX_IMAGE_BYTES,
        max_url_length: int = MAX_URL_LENGTH,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.max_url_length = max_url_length

    def fetch(self, raw_url: str) -> tuple[ImageResolution, str | None]:
        """
        Fetch one image.

        Args:
            raw_url: URL as it appears in the HTML

        Returns:
            (resolution, data_uri) where data_uri is None when unresolved
        """
        url = normalize_proxy_url(raw_url)
        if len(url) > self.max_url_length:
            return ImageResolution(reference=raw_url, resolved=False, reason="url_too_long"), None

        try:
            response = self.session.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
                allow_redirects=True,
                stream=True,
            )
            try:
                if response.status_code != 200:
                    return (
                        ImageResolution(reference=raw_url, resolved=False, reason=f"http_{response.status_code}"),
                        None,
                    )

                declared_length = response.headers.get("Content-Length")
                if declared_length and declared_length.isdigit() and int(declared_length) > self.max_bytes:
                    return ImageResolution(reference=raw_url, resolved=False, reason="too_large"), None

                data = self._read_bounded(response)
                if data is None:
                    return ImageResolution(reference=raw_url, resolved=False, reason="too_large"), None

                content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip()
                if not content_type:
                    content_type = infer_content_type(url)
            finally:
                response.close()

        except Exception as e:
            logger.debug(f"Leaving remote image unresolved ({url}): {e}")
            return ImageResolution(reference=raw_url, resolved=False, reason="fetch_error"), None

        return (
            ImageResolution(reference=raw_url, resolved=True, content_type=content_type),
            to_data_uri(content_type, data),
        )

    def _read_bounded(self, response: requests.Response) -> bytes | None:
        """Read the body, giving up as soon as it exceeds max_bytes."""
        chunks: list[bytes] = []
        total = 0
        for chunk in response.iter_content(chunk_size=64 * 1024):
            if not chunk:
                continue
            total += len(chunk)
            if total > self.max_bytes:
                return None
            chunks.append(chunk)
        return b"".join(chunks)


def inline_remote_images(html: str, fetcher: RemoteImageFetcher) -> InlineResult:
    """
    Normalize lazy-load markup and replace https image sources with data URIs.

    Args:
        html: Email HTML body (after cid inlining)
        fetcher: Fetcher used for every remote reference

    Returns:
        InlineResult with the rewritten HTML and one resolution per reference
    """
    result = InlineResult(html=html or "")
    if not html:
        return result

    html = strip_srcset(promote_lazy_sources(html))

    def _replace(match: re.Match) -> str:
        quote, raw_url = match.group(1), match.group(2)
        resolution, data_uri = fetcher.fetch(raw_url)
        result.resolutions.append(resolution)
        if data_uri is None:
            return match.group(0)
        return f"src={quote}{data_uri}{quote}"

    result.html = REMOTE_SRC_PATTERN.sub(_replace, html)
    logger.debug(f"Remote images: {result.resolved_count} inlined, {result.unresolved_count} left external")
    return result
