#!/usr/bin/env python3
"""
Batch orchestrator - SEQUENTIAL GTM performance audits

Validates the input URLs, then audits them one at a time through the
stabilizer. A failing URL becomes an error result and the batch carries on.
Results always come back in input order.
"""

import asyncio
import re
from typing import Callable, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from audit_errors import AuditError, InvalidUrlError, NoContainerFoundError
from audit_models import AuditResult, BatchReport, ProgressSnapshot, STATUS_SUCCESS
from logging_config import setup_logger
from progress_manager import ProgressTracker
from summary import summarize

ALLOWED_SCHEMES = ('http', 'https')

ProgressCallback = Callable[[ProgressSnapshot], None]


def parse_url_input(text: str) -> List[str]:
    """Split newline or comma delimited text into trimmed, non-empty candidates"""
    if not text:
        return []
    return [part.strip() for part in re.split(r'[\n,]', text) if part.strip()]


def check_url(url: str) -> str:
    """
    Return the trimmed URL if it is an absolute http(s) URL

    Raises:
        InvalidUrlError: not a string, unparsable, wrong scheme or no host
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError(str(url), "URL is required and must be a string")

    candidate = url.strip()
    try:
        parsed = urlparse(candidate)
        hostname = parsed.hostname
    except ValueError as e:
        raise InvalidUrlError(candidate, str(e)) from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidUrlError(candidate)
    if not hostname:
        raise InvalidUrlError(candidate, "missing host")
    return candidate


def validate_urls(candidates: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split candidates into (valid, rejected), both in input order"""
    valid, rejected = [], []
    for candidate in candidates:
        try:
            valid.append(check_url(candidate))
        except InvalidUrlError:
            rejected.append(candidate)
    return valid, rejected


def http_status_for(result: AuditResult) -> int:
    return 200 if result.status == STATUS_SUCCESS else 500


class BatchAuditor:
    """Runs the stabilizer over a list of URLs, strictly one after another"""

    def __init__(self, stabilizer, debug_mode: bool = False):
        self.stabilizer = stabilizer
        self.debug_mode = debug_mode
        self.logger = setup_logger('BatchAuditor', debug_mode)
        # One browser session at a time, even with concurrent callers
        self._audit_lock = asyncio.Lock()

    async def audit_url(self, url: str) -> AuditResult:
        """
        Audit a single URL

        Raises:
            InvalidUrlError: malformed input, before any measurement
        """
        return await self._audit_validated(check_url(url))

    async def run_batch(self, urls: Iterable[str],
                        on_progress: Optional[ProgressCallback] = None,
                        should_stop: Optional[Callable[[], bool]] = None) -> List[AuditResult]:
        """
        Audit every valid URL in order and return one result per URL

        Invalid URLs are dropped before the batch starts. should_stop is
        checked between URLs; when it returns True the results so far are
        returned.
        """
        valid, rejected = validate_urls(urls)
        if rejected:
            self.logger.warning(f"⚠️ {len(rejected)} invalid URLs were removed: {rejected}")

        tracker = ProgressTracker(len(valid), debug_mode=self.debug_mode)
        self._emit(on_progress, tracker.start(valid[0] if valid else None))

        results = []
        for index, url in enumerate(valid):
            if should_stop is not None and should_stop():
                self.logger.warning(f"⏹️ Batch stopped after {index}/{len(valid)} URLs")
                break

            self.logger.info(f"[{index + 1}/{len(valid)}] Auditing: {url}")
            results.append(await self._audit_validated(url))

            next_url = valid[index + 1] if index + 1 < len(valid) else None
            self._emit(on_progress, tracker.snapshot(index + 1, next_url))

        return results

    async def audit_batch(self, urls: Iterable[str],
                          on_progress: Optional[ProgressCallback] = None,
                          should_stop: Optional[Callable[[], bool]] = None) -> BatchReport:
        """run_batch plus the summary and the list of rejected inputs"""
        candidates = list(urls)
        _, rejected = validate_urls(candidates)
        results = await self.run_batch(candidates, on_progress=on_progress, should_stop=should_stop)
        return BatchReport(results=tuple(results), summary=summarize(results),
                           rejected_urls=tuple(rejected))

    async def _audit_validated(self, url: str) -> AuditResult:
        try:
            async with self._audit_lock:
                metrics = await self.stabilizer.stabilize(url)
        except AuditError as e:
            self.logger.error(f"❌ Failed: {url} - {e}")
            return AuditResult.failure(url, str(e) or type(e).__name__)
        except Exception as e:
            self.logger.exception(f"❌ Unexpected error auditing {url}")
            return AuditResult.failure(url, f"Audit failed: {str(e) or type(e).__name__}")

        if not metrics:
            return AuditResult.failure(url, str(NoContainerFoundError(url)))

        self.logger.info(f"✅ Completed: {url} ({len(metrics)} GTM container(s))")
        return AuditResult.success(url, metrics)

    def _emit(self, on_progress: Optional[ProgressCallback], snapshot: ProgressSnapshot) -> None:
        if on_progress is not None:
            on_progress(snapshot)
