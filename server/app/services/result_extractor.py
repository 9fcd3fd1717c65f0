"""Locate produced media in a ComfyUI history ``outputs`` mapping."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence
from urllib.parse import urlencode

# Animated outputs are checked in this order within each node.
ANIMATION_KEYS = ("gifs", "videos")
IMAGE_KEY = "images"


@dataclass(frozen=True)
class ExtractedMedia:
    media_url: Optional[str] = None
    auxiliary_media: tuple[str, ...] = ()


def build_view_url(api_base: str, ref: Mapping[str, Any]) -> str:
    query = urlencode(
        {
            "filename": ref.get("filename", ""),
            "subfolder": ref.get("subfolder", ""),
            "type": ref.get("type", ""),
        }
    )
    return f"{api_base.rstrip('/')}/view?{query}"


def _ordered_nodes(
    outputs: Mapping[str, Any], node_order: Sequence[str]
) -> Iterable[Mapping[str, Any]]:
    """Yield node outputs in ``node_order`` first, then in response order."""

    seen: set[str] = set()
    for node_id in node_order:
        node = outputs.get(node_id)
        if node_id in outputs and isinstance(node, Mapping):
            seen.add(node_id)
            yield node
    for node_id, node in outputs.items():
        if node_id not in seen and isinstance(node, Mapping):
            yield node


def _media_list(node: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    value = node.get(key)
    if not isinstance(value, list):
        return []
    return [ref for ref in value if isinstance(ref, Mapping)]


def extract_media(
    api_base: str,
    outputs: Optional[Mapping[str, Any]],
    node_order: Sequence[str] = (),
) -> ExtractedMedia:
    """Pick the first animated output and collect every still image.

    Missing ``outputs``, unknown nodes and unrecognized media kinds are skipped.
    Pass ``node_order`` (the job graph's declaration order) to make the first
    match independent of the backend's key ordering.
    """

    if not isinstance(outputs, Mapping):
        return ExtractedMedia()

    media_url: Optional[str] = None
    images: list[str] = []
    for node in _ordered_nodes(outputs, node_order):
        if media_url is None:
            for key in ANIMATION_KEYS:
                refs = _media_list(node, key)
                if refs:
                    media_url = build_view_url(api_base, refs[0])
                    break
        images.extend(build_view_url(api_base, ref) for ref in _media_list(node, IMAGE_KEY))

    return ExtractedMedia(media_url=media_url, auxiliary_media=tuple(images))
