import os
import logging
from typing import Optional

from .errors import Misconfigured

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int, minimum: Optional[int] = None) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        number = int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={value!r}, using {default}")
        return default
    if minimum is not None and number < minimum:
        logger.warning(f"Ignoring {name}={number}, must be at least {minimum}; using {default}")
        return default
    return number


class Config:
    """Configuration management using environment variables"""

    def __init__(self):
        # Figma configuration
        self.figma_token: Optional[str] = os.getenv('FIGMA_ACCESS_TOKEN') or os.getenv('FIGMA_API_TOKEN')

        # DigitalOcean Spaces configuration (only needed for --upload)
        self.do_access_key = os.getenv('DO_ACCESS_KEY')
        self.do_secret_key = os.getenv('DO_SECRET_KEY')
        self.do_region = os.getenv('DO_REGION', 'nyc3')
        self.do_space_name = os.getenv('DO_SPACE_NAME')

        # Optional configurations
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')
        self.max_retries = _int_env('MAX_RETRIES', 3, minimum=0)
        self.request_timeout = _int_env('REQUEST_TIMEOUT', 30, minimum=1)
        self.max_frames = _int_env('MAX_FRAMES', 8, minimum=1)

    @property
    def has_figma_access(self) -> bool:
        return bool(self.figma_token)

    def require_figma_token(self) -> str:
        """Return the Figma token or raise Misconfigured before any network call"""
        if not self.figma_token:
            logger.error("FIGMA_ACCESS_TOKEN is not set")
            raise Misconfigured()
        return self.figma_token

    def validate(self, require_storage: bool = False) -> bool:
        """Validate that required configuration is present"""
        required_vars = [
            ('FIGMA_ACCESS_TOKEN', self.figma_token),
        ]
        if require_storage:
            required_vars += [
                ('DO_ACCESS_KEY', self.do_access_key),
                ('DO_SECRET_KEY', self.do_secret_key),
                ('DO_SPACE_NAME', self.do_space_name)
            ]

        missing_vars = [var_name for var_name, var_value in required_vars if not var_value]

        if missing_vars:
            logger.error(f"Missing required environment variables: {', '.join(missing_vars)}")
            return False

        return True

    def get_do_endpoint_url(self) -> str:
        """Get DigitalOcean Spaces endpoint URL"""
        return f'https://{self.do_region}.digitaloceanspaces.com'
