import time
import logging
from typing import Callable, Dict, List, Optional

import requests

from .config import Config
from .errors import AccessDenied, NoFramesExported, NoFramesFound, RateLimited, UpstreamUnavailable
from .figma_client import FigmaClient
from .locator import parse_figma_url
from .models import ExportableUnit, ExportResult, RenderedFrame
from .tree_walker import extract_document_frames

logger = logging.getLogger(__name__)

DEFAULT_MAX_FRAMES = 8
SETTLE_DELAY_SECONDS = 0.5
FALLBACK_DELAY_SECONDS = 0.4


def _image_urls(response: requests.Response) -> Dict[str, str]:
    """Node id -> URL from an images response, dropping nodes Figma could not render"""
    try:
        payload = response.json()
    except ValueError:
        raise UpstreamUnavailable("Figma API returned an invalid images payload")
    if not isinstance(payload, dict):
        raise UpstreamUnavailable("Figma API returned an invalid images payload")

    if payload.get('err'):
        logger.warning(f"Figma reported an export error: {payload['err']}")
    images = payload.get('images') or {}
    if not isinstance(images, dict):
        raise UpstreamUnavailable("Figma API returned an invalid images payload")
    return {node_id: url for node_id, url in images.items() if url}


def assemble_result(document_name: str, document_id: str, units: List[ExportableUnit],
                    url_map: Dict[str, str], total_units_found: Optional[int] = None) -> ExportResult:
    """Join units with their rendered URLs, keeping unit order and dropping misses"""
    frames = [
        RenderedFrame(id=unit.id, name=unit.name, image_url=url_map[unit.id])
        for unit in units
        if url_map.get(unit.id)
    ]

    if not frames:
        raise NoFramesExported()

    return ExportResult(
        document_name=document_name,
        document_id=document_id,
        frames=frames,
        total_units_found=len(units) if total_units_found is None else total_units_found,
        exported_units_count=len(frames)
    )


class FrameExporter:
    """Turns a Figma URL into a bounded set of rendered frame images"""

    def __init__(self, client: FigmaClient, max_frames: int = DEFAULT_MAX_FRAMES,
                 settle_delay: float = SETTLE_DELAY_SECONDS,
                 fallback_delay: float = FALLBACK_DELAY_SECONDS,
                 sleep: Callable[[float], None] = time.sleep):
        if max_frames < 1:
            raise ValueError(f"max_frames must be at least 1, got {max_frames}")
        self.client = client
        self.max_frames = max_frames
        self.settle_delay = settle_delay
        self.fallback_delay = fallback_delay
        self.sleep = sleep

    @classmethod
    def from_config(cls, config: Config) -> 'FrameExporter':
        client = FigmaClient(
            config.require_figma_token(),
            max_retries=config.max_retries,
            timeout=config.request_timeout
        )
        return cls(client, max_frames=config.max_frames)

    def close(self):
        self.client.close()

    def export(self, figma_url: str) -> ExportResult:
        reference = parse_figma_url(figma_url)
        file_key = reference.document_id
        if reference.sub_node_id:
            logger.info(f"URL points at node {reference.sub_node_id}; exporting top-level frames of the whole file")

        file_data = self._fetch_file(file_key)
        document_name = file_data.get('name') or 'Untitled'

        all_frames = extract_document_frames(file_data)
        if not all_frames:
            raise NoFramesFound()

        frames_to_export = all_frames[:self.max_frames]

        # Back-to-back calls trip Figma's rate limiter
        self.sleep(self.settle_delay)

        images = self.export_images(file_key, frames_to_export)
        result = assemble_result(document_name, file_key, frames_to_export, images,
                                 total_units_found=len(all_frames))

        logger.info(f"Successfully extracted {result.exported_units_count} frames from \"{document_name}\"")
        return result

    def _fetch_file(self, file_key: str) -> Dict:
        try:
            response = self.client.get_file(file_key, depth=2)
        except requests.RequestException as e:
            logger.error(f"Error fetching file data: {e}")
            raise UpstreamUnavailable(f"Figma API request failed: {e}")

        if not response.ok:
            logger.error(f"Figma API error: {response.status_code} {response.text}")
            if response.status_code == 403:
                raise AccessDenied()
            if response.status_code == 429:
                raise RateLimited(f"File fetch for {file_key} still rate limited")
            raise UpstreamUnavailable(upstream_status=response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise UpstreamUnavailable("Figma API returned an invalid file payload")
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Figma API returned an invalid file payload")
        return data

    def export_images(self, file_key: str, units: List[ExportableUnit]) -> Dict[str, str]:
        """Render all units in one call, falling back to one call per unit"""
        logger.info(f"Exporting {len(units)} frames as images (single batch)")

        try:
            response = self.client.get_images(file_key, [unit.id for unit in units])
        except requests.RequestException as e:
            logger.warning(f"Batch export request failed: {e}")
            response = None

        if response is not None and response.ok:
            return _image_urls(response)

        if response is not None and response.status_code == 429:
            raise RateLimited(f"Batch export for {file_key} rate limited")

        logger.info("Batch export failed, falling back to sequential")
        return self._export_sequential(file_key, units)

    def _export_sequential(self, file_key: str, units: List[ExportableUnit]) -> Dict[str, str]:
        images: Dict[str, str] = {}

        for unit in units:
            self.sleep(self.fallback_delay)

            try:
                response = self.client.get_images(file_key, [unit.id])
            except requests.RequestException as e:
                logger.error(f"Failed to export frame {unit.name}: {e}")
                continue

            if response.ok:
                try:
                    images.update(_image_urls(response))
                except UpstreamUnavailable as e:
                    logger.error(f"Failed to export frame {unit.name}: {e.message}")
                    continue
            elif response.status_code == 429:
                raise RateLimited(f"Export of frame {unit.id} rate limited")
            else:
                logger.error(f"Failed to export frame {unit.name}: {response.status_code}")

        return images
