import time
import random
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

import requests

from .retry import fetch_with_retry

logger = logging.getLogger(__name__)

FIGMA_API_URL = "https://api.figma.com/v1"


class FigmaClient:
    """Figma REST API client for file trees and rendered frame images"""

    def __init__(self, api_token: str, session: Optional[requests.Session] = None,
                 max_retries: int = 3, timeout: int = 30,
                 sleep: Callable[[float], None] = time.sleep,
                 jitter: Callable[[], float] = random.random):
        self.api_token = api_token
        self.base_url = FIGMA_API_URL
        self.max_retries = max_retries
        self.timeout = timeout
        self.sleep = sleep
        self.jitter = jitter
        self.session = session or requests.Session()
        self.session.headers.update({
            'X-Figma-Token': self.api_token,
            'User-Agent': 'Figma-Frame-Exporter/1.0'
        })

        # Processing statistics
        self.stats = {
            'api_calls': 0,
            'rate_limited': 0,
            'downloads': 0,
            'errors': 0
        }

    def _get(self, endpoint: str, params: Optional[Dict] = None) -> requests.Response:
        response = fetch_with_retry(
            self.session,
            f"{self.base_url}{endpoint}",
            params=params,
            max_retries=self.max_retries,
            timeout=self.timeout,
            sleep=self.sleep,
            jitter=self.jitter
        )
        self.stats['api_calls'] += 1
        if response.status_code == 429:
            self.stats['rate_limited'] += 1
        elif not response.ok:
            self.stats['errors'] += 1
        return response

    def validate_token(self) -> bool:
        """Validate the API token"""
        try:
            response = self._get("/me")
            if response.status_code == 200:
                user_info = response.json()
                logger.info(f"Authenticated as: {user_info.get('email', 'Unknown user')}")
                return True
            else:
                logger.error(f"Token validation failed: {response.status_code}")
                return False
        except requests.RequestException as e:
            logger.error(f"Error validating token: {e}")
            return False

    def get_file(self, file_key: str, depth: int = 2) -> requests.Response:
        """Fetch the file tree, depth-limited to pages and their top-level nodes"""
        logger.info(f"Fetching Figma file tree: {file_key}")
        return self._get(f"/files/{file_key}", params={'depth': depth})

    def get_images(self, file_key: str, node_ids: Iterable[str],
                   image_format: str = 'png', scale: int = 1) -> requests.Response:
        """Request rendered image URLs for one or more nodes in a single call"""
        params = {
            'ids': ','.join(node_ids),
            'format': image_format,
            'scale': scale
        }
        return self._get(f"/images/{file_key}", params=params)

    def download_image(self, url: str, filepath: Path, max_retries: int = 3) -> bool:
        """Download a rendered image to ``filepath``, retrying network errors"""
        for attempt in range(max_retries):
            try:
                with requests.get(url, stream=True, timeout=self.timeout) as response:
                    if response.status_code != 200:
                        logger.warning(f"Download failed: HTTP {response.status_code}")
                        self.stats['errors'] += 1
                        return False

                    filepath.parent.mkdir(parents=True, exist_ok=True)
                    with open(filepath, 'wb') as f:
                        for chunk in response.iter_content(chunk_size=8192):
                            f.write(chunk)
                self.stats['downloads'] += 1
                return True

            except requests.RequestException as e:
                # A stream cut mid-way leaves a truncated PNG behind
                filepath.unlink(missing_ok=True)
                if attempt < max_retries - 1:
                    logger.warning(f"Retry {attempt + 1}/{max_retries} for {filepath.name}: {e}")
                    self.sleep(2 ** attempt)
                else:
                    logger.error(f"Download failed after {max_retries} attempts: {e}")
                    self.stats['errors'] += 1
                    return False

        return False

    def close(self):
        self.session.close()

    def get_stats(self) -> Dict[str, int]:
        """Get request statistics"""
        return dict(self.stats)
