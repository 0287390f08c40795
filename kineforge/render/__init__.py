"""
Rendering Module.

Responsibilities:
- Stage output (primary reactive visual)
- Node previews, materialized only for observed nodes
- Shared drawing helpers (cover scaling, landmarks, control scope)
"""

from .stage import StageRenderer, compute_stage_radius
from .preview import PreviewMaterializer, node_metric_lines
from .drawing import cover, cover_rect, encode_jpeg
