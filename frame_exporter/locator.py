import re
from urllib.parse import parse_qs, urlparse

from .errors import InvalidReference
from .models import DocumentReference

# /file/<key>/... and /design/<key>/... are the shapes Figma shares links in
FILE_PATH_KINDS = ('file', 'design')
FILE_KEY_PATTERN = re.compile(r'^[A-Za-z0-9]+$')


def parse_figma_url(locator: str) -> DocumentReference:
    """Extract the file key and optional node-id from a Figma file or design URL"""
    if not isinstance(locator, str) or not locator.strip():
        raise InvalidReference()

    url = locator.strip()
    if '://' not in url:
        url = f"https://{url}"

    try:
        parsed = urlparse(url)
    except ValueError:
        raise InvalidReference()

    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise InvalidReference()

    segments = [part for part in parsed.path.split('/') if part]
    if len(segments) < 2 or segments[0] not in FILE_PATH_KINDS:
        raise InvalidReference()

    file_key = segments[1]
    if not FILE_KEY_PATTERN.match(file_key):
        raise InvalidReference()

    node_ids = parse_qs(parsed.query).get('node-id')
    sub_node_id = node_ids[0] if node_ids and node_ids[0] else None

    return DocumentReference(document_id=file_key, sub_node_id=sub_node_id)
