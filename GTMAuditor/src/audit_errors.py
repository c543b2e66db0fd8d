#!/usr/bin/env python3
"""
Error taxonomy for GTM performance audits
Every kind is caught at the per-URL boundary and turned into an error result
"""


class AuditError(Exception):
    """Base class for all per-URL audit failures"""


class InvalidUrlError(AuditError):
    """URL failed the syntax or scheme check - rejected before measurement"""

    def __init__(self, url: str, reason: str = "must be an http:// or https:// URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL format: {url!r} ({reason})")


class NoContainerFoundError(AuditError):
    """Measurement worked but no gtm.js loader script was found on the page"""

    def __init__(self, url: str = None):
        self.url = url
        where = f" on {url}" if url else " on this page"
        super().__init__(
            f"No Google Tag Manager container scripts (gtm.js) found{where} by Lighthouse."
        )


class MeasurementError(AuditError):
    """Browser launch, network or Lighthouse failure"""


class BrowserLaunchError(MeasurementError):
    """The browser session could not be started"""


class MeasurementTimeoutError(AuditError, TimeoutError):
    """A measurement round or session operation ran past its deadline"""

    def __init__(self, operation: str, timeout_s: float, url: str = None):
        self.operation = operation
        self.timeout_s = timeout_s
        self.url = url
        target = f" for {url}" if url else ""
        super().__init__(f"Timed out after {timeout_s:g}s during {operation}{target}")
