"""Output renderers for lookup results."""

from .common import GroupedMatch, collapse_ports, group_matches
from .json_renderer import build_envelope, render_json
from .text_renderer import TextRenderer

__all__ = [
    "GroupedMatch",
    "collapse_ports",
    "group_matches",
    "build_envelope",
    "render_json",
    "TextRenderer",
]
