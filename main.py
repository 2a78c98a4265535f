import os
import sys
import json
import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from frame_exporter.config import Config
from frame_exporter.errors import FrameExportError, RateLimited
from frame_exporter.exporter import FrameExporter
from frame_exporter.figma_client import FigmaClient
from frame_exporter.models import ExportResult
from frame_exporter.storage import SpacesUploader
from frame_exporter.utils import frame_filename, setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_RATE_LIMITED = 2


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Export rendered frame images from a Figma file')
    parser.add_argument('figma_url', nargs='?', help='Figma file or design URL')
    parser.add_argument('--output-dir', default='./output', help='Local output directory')
    parser.add_argument('--download', action='store_true', help='Save frame PNGs and result.json locally')
    parser.add_argument('--upload', action='store_true', help='Mirror frame PNGs to DigitalOcean Spaces (implies --download)')
    parser.add_argument('--remote-folder', default='figma-frames', help='Remote folder in DO Spaces')
    parser.add_argument('--max-frames', type=positive_int, help='Maximum number of frames to export (default: MAX_FRAMES or 8)')
    parser.add_argument('--check-token', action='store_true', help='Only validate the Figma token')
    parser.add_argument('--log-level', help='Logging level (default: LOG_LEVEL or INFO)')
    parser.add_argument('--serve', action='store_true', help='Run the HTTP endpoint instead of a one-off export')
    parser.add_argument('--host', default='127.0.0.1', help='Host for --serve')
    parser.add_argument('--port', type=int, default=8000, help='Port for --serve')
    return parser


def save_frames(figma: FigmaClient, result: ExportResult, output_dir: Path) -> List[Path]:
    """Download every rendered frame into ``output_dir/frames``"""
    frames_dir = output_dir / "frames"
    saved = []

    for i, frame in enumerate(result.frames, 1):
        filepath = frames_dir / frame_filename(frame.id, frame.name)
        logger.info(f"[{i}/{len(result.frames)}] Downloading: {frame.name}")
        if figma.download_image(frame.image_url, filepath):
            saved.append(filepath)
            logger.info(f"✅ Downloaded: {frame.name} → {filepath.name}")
        else:
            logger.error(f"❌ Failed to download: {frame.name}")

    return saved


def write_result(result: ExportResult, output_dir: Path, uploads: Optional[dict] = None) -> Path:
    data = result.to_response()
    data['_metadata'] = {
        'extracted_at': datetime.now().isoformat(),
        'figma_file_key': result.document_id,
    }
    if uploads:
        data['_uploads'] = {
            Path(item['local_path']).name: {'url': item['url'], 'cdn_url': item['cdn_url']}
            for item in uploads['uploaded_files']
        }

    json_path = output_dir / "result.json"
    with open(json_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.info(f"📄 Result saved to: {json_path}")
    return json_path


def serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("frame_exporter.server:app", host=host, port=port)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    if os.path.exists('.env'):
        load_dotenv('.env')

    args = build_parser().parse_args(argv)
    config = Config()

    setup_logging(args.log_level or config.log_level)

    if args.serve:
        return serve(args.host, args.port)

    if not config.validate(require_storage=args.upload):
        logger.error("Configuration validation failed. Check your environment variables.")
        return EXIT_FAILED

    if args.max_frames is not None:
        config.max_frames = args.max_frames

    exporter = FrameExporter.from_config(config)
    try:
        return run(args, config, exporter)
    finally:
        exporter.close()


def run(args: argparse.Namespace, config: Config, exporter: FrameExporter) -> int:
    figma = exporter.client

    if args.check_token:
        return EXIT_OK if figma.validate_token() else EXIT_FAILED

    if not args.figma_url:
        logger.error("A Figma URL is required")
        return EXIT_FAILED

    try:
        result = exporter.export(args.figma_url)
    except RateLimited:
        logger.error("Figma is rate limiting this token. Try again in a minute.")
        return EXIT_RATE_LIMITED
    except FrameExportError as e:
        logger.error(f"Export failed: {e.message}")
        return EXIT_FAILED

    uploads = None
    if args.download or args.upload:
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        saved = save_frames(figma, result, output_dir)

        if args.upload and saved:
            logger.info("☁️ Uploading frames to DigitalOcean Spaces...")
            uploader = SpacesUploader.from_config(config)
            uploads = uploader.upload_frames(saved, remote_folder=f"{args.remote_folder}/{result.document_id}")
            logger.info(f"☁️ Upload completed: {uploads['total_uploaded']} successful, {uploads['total_failed']} failed")

        write_result(result, output_dir, uploads)

    stats = figma.get_stats()
    logger.info(f"📡 API Calls: {stats['api_calls']}, rate limited: {stats['rate_limited']}, errors: {stats['errors']}")

    print(json.dumps(result.to_response(), indent=2, ensure_ascii=False))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
