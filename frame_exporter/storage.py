import mimetypes
import logging
from pathlib import Path
from typing import Dict, Iterable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Config

logger = logging.getLogger(__name__)


class SpacesUploader:
    """Mirrors rendered frames into a DigitalOcean Space so their URLs outlive Figma's"""

    def __init__(self, access_key: str, secret_key: str, region: str, space_name: str, client=None):
        self.space_name = space_name
        self.region = region

        # DigitalOcean Spaces speaks the S3 API
        self.client = client or boto3.client(
            's3',
            region_name=region,
            endpoint_url=f'https://{region}.digitaloceanspaces.com',
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key
        )

        logger.info(f"Initialized DigitalOcean Spaces client for {space_name} in {region}")

    @classmethod
    def from_config(cls, config: Config) -> 'SpacesUploader':
        return cls(config.do_access_key, config.do_secret_key, config.do_region, config.do_space_name)

    def test_connection(self) -> bool:
        """Test connection to DigitalOcean Spaces"""
        try:
            self.client.head_bucket(Bucket=self.space_name)
            logger.info("Successfully connected to DigitalOcean Spaces")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to connect to DigitalOcean Spaces: {e}")
            return False

    def upload_file(self, local_file_path: str, remote_path: str, public_read: bool = True) -> Dict:
        """Upload a single file to DigitalOcean Spaces"""
        file_path = Path(local_file_path)
        if not file_path.exists():
            return {
                'success': False,
                'error': f'File not found: {local_file_path}',
                'url': None
            }

        content_type, _ = mimetypes.guess_type(local_file_path)
        if content_type is None:
            content_type = 'application/octet-stream'

        extra_args = {'ContentType': content_type}
        if public_read:
            extra_args['ACL'] = 'public-read'

        try:
            logger.info(f"Uploading {file_path.name} to {remote_path}")
            self.client.upload_file(
                str(file_path),
                self.space_name,
                remote_path,
                ExtraArgs=extra_args
            )
        except (ClientError, BotoCoreError) as e:
            error_msg = f'Upload failed: {e}'
            logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'url': None
            }

        url = self.get_file_url(remote_path)
        logger.info(f"Successfully uploaded: {url}")

        return {
            'success': True,
            'local_path': str(file_path),
            'remote_path': remote_path,
            'url': url,
            'cdn_url': self.get_cdn_url(remote_path),
            'content_type': content_type,
            'file_size': file_path.stat().st_size
        }

    def upload_frames(self, local_paths: Iterable[Path], remote_folder: str = "",
                      public_read: bool = True) -> Dict:
        """Upload saved frame images under ``remote_folder``"""
        if remote_folder and not remote_folder.endswith('/'):
            remote_folder += '/'

        uploaded_files = []
        failed_uploads = []

        for path in local_paths:
            path = Path(path)
            result = self.upload_file(str(path), f"{remote_folder}{path.name}", public_read)

            if result['success']:
                uploaded_files.append(result)
                logger.info(f"✅ Uploaded: {path.name}")
            else:
                failed_uploads.append({
                    'file': str(path),
                    'error': result['error']
                })
                logger.error(f"❌ Failed: {path.name} - {result['error']}")

        return {
            'success': len(failed_uploads) == 0,
            'uploaded_files': uploaded_files,
            'failed_uploads': failed_uploads,
            'total_uploaded': len(uploaded_files),
            'total_failed': len(failed_uploads)
        }

    def get_file_url(self, remote_path: str) -> str:
        """Get the public URL for a file in DigitalOcean Spaces"""
        return f'https://{self.space_name}.{self.region}.digitaloceanspaces.com/{remote_path}'

    def get_cdn_url(self, remote_path: str) -> str:
        """Get the CDN URL for a file in DigitalOcean Spaces"""
        return f'https://{self.space_name}.{self.region}.cdn.digitaloceanspaces.com/{remote_path}'
