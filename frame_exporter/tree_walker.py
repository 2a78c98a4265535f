import logging
from typing import Any, Dict, List, Optional

from .models import DocumentNode, ExportableUnit

logger = logging.getLogger(__name__)

CANVAS_TYPE = 'CANVAS'
EXPORTABLE_TYPES = frozenset({'FRAME', 'COMPONENT', 'COMPONENT_SET', 'SECTION'})

# Document -> pages -> frames is two levels; anything past this is malformed
MAX_WALK_DEPTH = 8


def extract_frames(root: Optional[DocumentNode], max_depth: int = MAX_WALK_DEPTH) -> List[ExportableUnit]:
    """Collect the top-level frames of every canvas under ``root``.

    A canvas contributes its direct children whose type is exportable, in
    order, and is not descended into further. Any other node is expanded
    child by child, so pages are flattened in page order.
    """
    if root is None:
        return []

    frames: List[ExportableUnit] = []
    stack = [(root, 0)]

    while stack:
        node, depth = stack.pop()

        if node.type == CANVAS_TYPE and node.children:
            for child in node.children:
                if child.type in EXPORTABLE_TYPES:
                    frames.append(ExportableUnit(id=child.id, name=child.name))
            continue

        if not node.children:
            continue

        if depth >= max_depth:
            logger.warning(f"Not descending below node {node.id!r}: depth limit {max_depth} reached")
            continue

        # Reversed so the first child is popped first
        for child in reversed(node.children):
            stack.append((child, depth + 1))

    return frames


def extract_document_frames(file_data: Dict[str, Any]) -> List[ExportableUnit]:
    """Frames of a GET /v1/files response, page order then child order"""
    document = DocumentNode.from_dict(file_data.get('document'))
    if document is None:
        return []
    return extract_frames(document)
