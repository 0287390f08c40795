"""
Node template library.

Every node in a graph is spawned from one of these templates. A template
fixes the node's kind, its typed ports and the preview recipe used when the
node is observed.

To add a new node type:
1. Add a NodeTemplate to NODE_LIBRARY
2. Register its compute step in kineforge/pipeline/steps.py STEPS
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple, Dict, Any, List

from kineforge.core.contracts import NodeKind, PortSpec, PortType, PreviewKey


@dataclass(frozen=True)
class NodeTemplate:
    """Blueprint for a graph node."""
    template_id: str
    title: str
    subtitle: str
    kind: NodeKind
    inputs: Tuple[PortSpec, ...]
    outputs: Tuple[PortSpec, ...]
    preview_source: PreviewKey
    search_terms: str = ""
    default_properties: Dict[str, Any] = field(default_factory=dict)

    def matches(self, query: str) -> bool:
        haystack = f"{self.title} {self.subtitle} {self.kind.value} {self.search_terms}"
        return query.lower() in haystack.lower()


NODE_LIBRARY: List[NodeTemplate] = [
    NodeTemplate(
        template_id="camera-source",
        title="Webcam Source",
        subtitle="Live performer feed",
        kind=NodeKind.SOURCE,
        inputs=(),
        outputs=(
            PortSpec("frame", PortType.IMAGE),
            PortSpec("timeMs", PortType.TIMESTAMP),
        ),
        preview_source=PreviewKey.WEBCAM,
        search_terms="camera webcam input source performer",
    ),
    NodeTemplate(
        template_id="face-extract",
        title="Face Extract",
        subtitle="Landmarks + expression cues",
        kind=NodeKind.EXTRACTOR,
        inputs=(
            PortSpec("frame", PortType.IMAGE),
            PortSpec("timeMs", PortType.TIMESTAMP),
        ),
        outputs=(
            PortSpec("landmarks", PortType.FACE_LANDMARKS),
            PortSpec("metrics", PortType.FACE_METRICS),
        ),
        preview_source=PreviewKey.FACE,
        search_terms="face landmark expression extract",
    ),
    NodeTemplate(
        template_id="hand-extract",
        title="Hand Extract",
        subtitle="Landmarks + pinch strength",
        kind=NodeKind.EXTRACTOR,
        inputs=(
            PortSpec("frame", PortType.IMAGE),
            PortSpec("timeMs", PortType.TIMESTAMP),
        ),
        outputs=(
            PortSpec("landmarks", PortType.HAND_LANDMARKS),
            PortSpec("metrics", PortType.HAND_METRICS),
        ),
        preview_source=PreviewKey.HAND,
        search_terms="hand pinch gesture extract",
    ),
    NodeTemplate(
        template_id="landmark-overlay",
        title="Landmark Overlay",
        subtitle="Composed face + hand mesh",
        kind=NodeKind.COMPOSITOR,
        inputs=(
            PortSpec("frame", PortType.IMAGE),
            PortSpec("faceLandmarks", PortType.FACE_LANDMARKS),
            PortSpec("handLandmarks", PortType.HAND_LANDMARKS),
        ),
        outputs=(PortSpec("image", PortType.IMAGE),),
        preview_source=PreviewKey.OVERLAY,
        search_terms="overlay compose mesh blend",
        default_properties={"show_face": True, "show_hands": True},
    ),
    NodeTemplate(
        template_id="gesture-mapper",
        title="Gesture Mapper",
        subtitle="Transforms movement to controls",
        kind=NodeKind.MAPPER,
        inputs=(
            PortSpec("faceMetrics", PortType.FACE_METRICS),
            PortSpec("handMetrics", PortType.HAND_METRICS),
        ),
        outputs=(PortSpec("controls", PortType.CONTROLS),),
        preview_source=PreviewKey.MAPPER,
        search_terms="mapper control modulation transform",
    ),
    NodeTemplate(
        template_id="stage-output",
        title="Stage Output",
        subtitle="Realtime visual monitor feed",
        kind=NodeKind.SINK,
        inputs=(
            PortSpec("image", PortType.IMAGE),
            PortSpec("controls", PortType.CONTROLS),
        ),
        outputs=(),
        preview_source=PreviewKey.STAGE,
        search_terms="output stage monitor final render",
    ),
]

TEMPLATES: Dict[str, NodeTemplate] = {t.template_id: t for t in NODE_LIBRARY}


def get_template(template_id: str) -> NodeTemplate:
    """Get a node template by id.

    Raises:
        ValueError: If the template id is not registered
    """
    if template_id not in TEMPLATES:
        available = ", ".join(TEMPLATES.keys())
        raise ValueError(f"Unknown node template '{template_id}'. Available: {available}")
    return TEMPLATES[template_id]


def search_templates(query: str) -> List[NodeTemplate]:
    """Filter the library for the node picker. Empty query returns everything."""
    query = query.strip()
    if not query:
        return list(NODE_LIBRARY)
    return [t for t in NODE_LIBRARY if t.matches(query)]
