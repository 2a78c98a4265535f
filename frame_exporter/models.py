from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Deeper nodes are never needed; files are fetched with depth=2
MAX_NODE_DEPTH = 16


@dataclass(frozen=True)
class DocumentReference:
    """A Figma file key plus the optional node-id from the URL"""
    document_id: str
    sub_node_id: Optional[str] = None


@dataclass(frozen=True)
class DocumentNode:
    id: str
    name: str
    type: str
    children: Optional[List['DocumentNode']] = None

    @classmethod
    def from_dict(cls, data: Any, max_depth: int = MAX_NODE_DEPTH) -> Optional['DocumentNode']:
        """Build a node tree from Figma JSON, skipping anything that is not an object"""
        if not isinstance(data, dict):
            return None

        children = None
        raw_children = data.get('children')
        if isinstance(raw_children, list) and max_depth > 0:
            children = []
            for child in raw_children:
                node = cls.from_dict(child, max_depth - 1)
                if node is not None:
                    children.append(node)

        return cls(
            id=str(data.get('id') or ''),
            name=str(data.get('name') or 'Untitled'),
            type=str(data.get('type') or ''),
            children=children,
        )


@dataclass(frozen=True)
class ExportableUnit:
    id: str
    name: str


@dataclass(frozen=True)
class RenderedFrame:
    id: str
    name: str
    image_url: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'name': self.name,
            'nodeId': self.id,
            'imageUrl': self.image_url,
        }


@dataclass
class ExportResult:
    document_name: str
    document_id: str
    frames: List[RenderedFrame] = field(default_factory=list)
    total_units_found: int = 0
    exported_units_count: int = 0

    def to_response(self) -> Dict[str, Any]:
        """JSON body returned by the fetch-figma-frames endpoint"""
        return {
            'documentName': self.document_name,
            'documentId': self.document_id,
            'frames': [frame.to_dict() for frame in self.frames],
            'totalFrames': self.total_units_found,
            'exportedFrames': self.exported_units_count,
        }
