"""Grounding source extraction from provider response metadata."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


def _web_entries(metadata: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    for key in ("grounding_chunks", "groundingChunks"):
        for chunk in metadata.get(key) or []:
            if isinstance(chunk, dict):
                web = chunk.get("web") or chunk
                if isinstance(web, dict):
                    yield web
    for key in ("citations", "annotations"):
        for item in metadata.get(key) or []:
            if isinstance(item, str):
                yield {"uri": item}
            elif isinstance(item, dict):
                yield item.get("url_citation") or item


def extract_sources(metadata: Optional[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Return ``[{"uri", "title"}]`` entries, de-duplicated by uri, in first-seen order."""

    if not metadata:
        return []
    nested = metadata.get("grounding_metadata") or metadata.get("groundingMetadata")
    if isinstance(nested, dict):
        metadata = {**metadata, **nested}

    sources: List[Dict[str, str]] = []
    seen = set()
    for entry in _web_entries(metadata):
        uri = entry.get("uri") or entry.get("url")
        if not uri or uri in seen:
            continue
        seen.add(uri)
        sources.append({"uri": str(uri), "title": str(entry.get("title") or uri)})
    return sources


def merge_sources(*groups: Iterable[Dict[str, str]]) -> List[Dict[str, str]]:
    merged: List[Dict[str, str]] = []
    seen = set()
    for group in groups:
        for source in group:
            if source["uri"] not in seen:
                seen.add(source["uri"])
                merged.append(source)
    return merged
