"""Export rendered frame images from Figma files."""

from .errors import (
    AccessDenied,
    FrameExportError,
    InvalidReference,
    Misconfigured,
    NoFramesExported,
    NoFramesFound,
    RateLimited,
    UpstreamUnavailable,
)
from .exporter import FrameExporter, assemble_result
from .figma_client import FigmaClient
from .locator import parse_figma_url
from .models import DocumentNode, DocumentReference, ExportableUnit, ExportResult, RenderedFrame
from .retry import backoff_delay, fetch_with_retry
from .tree_walker import extract_document_frames, extract_frames

__version__ = "1.0.0"
