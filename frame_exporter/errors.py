"""Failures raised while exporting frames from a Figma file.

Each error carries the HTTP status and the message the endpoint returns in
its ``{"error": ...}`` body.
"""
from typing import Dict, Optional

RATE_LIMIT_SENTINEL = "rate_limit"


class FrameExportError(Exception):
    """Base class for every failure the exporter reports to its caller"""

    status_code = 500
    default_message = "Unknown error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {'error': self.message}


class InvalidReference(FrameExportError):
    status_code = 400
    default_message = "Invalid Figma URL. Please provide a valid Figma file or design link."


class AccessDenied(FrameExportError):
    status_code = 403
    default_message = "Access denied. Make sure your Figma token has access to this file."


class RateLimited(FrameExportError):
    """Figma kept answering 429; callers match on the 'rate_limit' body"""

    status_code = 429
    default_message = RATE_LIMIT_SENTINEL

    def __init__(self, message: Optional[str] = None):
        # The wire body is always the sentinel, whatever was logged
        super().__init__(RATE_LIMIT_SENTINEL)
        self.detail = message


class UpstreamUnavailable(FrameExportError):
    status_code = 500
    default_message = "Figma API error"

    def __init__(self, message: Optional[str] = None, upstream_status: Optional[int] = None):
        if message is None and upstream_status is not None:
            message = f"Figma API error: {upstream_status}"
        super().__init__(message)
        self.upstream_status = upstream_status


class NoFramesFound(FrameExportError):
    status_code = 400
    default_message = "No frames found in this Figma file."


class NoFramesExported(FrameExportError):
    status_code = 500
    default_message = ("Could not export any frame images. Figma may be temporarily "
                       "unavailable. Try again in a minute.")


class Misconfigured(FrameExportError):
    status_code = 500
    default_message = "FIGMA_ACCESS_TOKEN is not configured. Please add your Figma token."
