"""Source fetcher using httpx async client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from regtruth.models.enums import ContentClass

logger = logging.getLogger(__name__)

USER_AGENT = "RegTruth/0.1 (regulatory-monitor)"
TIMEOUT = 30.0
MAX_REDIRECTS = 5


@dataclass(frozen=True)
class FetchedSource:
    url: str
    body: bytes
    content_type: str | None
    content_class: ContentClass
    fetched_at: datetime


def classify_content(content_type: str | None) -> ContentClass:
    """Map a Content-Type header to a content class.

    PDFs are classified PDF_TEXT; the OCR collaborator reclassifies scanned ones by
    attaching OCR_TEXT artifacts.
    """
    ct = (content_type or "").split(";")[0].strip().lower()
    if ct == "application/pdf":
        return ContentClass.PDF_TEXT
    if ct in ("application/json", "application/ld+json") or ct.endswith("+json"):
        return ContentClass.JSON
    return ContentClass.HTML


async def fetch_source(url: str) -> FetchedSource | None:
    """Fetch a URL and return its body, or None on failure.

    - 30-second timeout
    - One retry on timeout or connection error
    - Follows up to 5 redirects
    - Logs errors but never raises
    """
    for attempt in range(2):  # attempt 0 = first try, attempt 1 = retry
        try:
            async with httpx.AsyncClient(
                timeout=TIMEOUT,
                follow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                content_type = response.headers.get("content-type")
                return FetchedSource(
                    url=str(response.url),
                    body=response.content,
                    content_type=content_type,
                    content_class=classify_content(content_type),
                    fetched_at=datetime.now(UTC),
                )
        except (httpx.TimeoutException, httpx.ConnectError) as exc:
            if attempt == 0:
                logger.warning("Fetch attempt 1 failed for %s: %s, retrying", url, exc)
                continue
            logger.error("Fetch failed after retry for %s: %s", url, exc)
            return None
        except httpx.HTTPStatusError as exc:
            logger.error("HTTP %s for %s", exc.response.status_code, url)
            return None
        except httpx.HTTPError as exc:
            logger.error("HTTP error fetching %s: %s", url, exc)
            return None
    return None
