"""Effective settings for a page: global, then group, then page.

Each level may override part of the level before it. The merge works on
the plain configuration objects, so a group override is just a partial
``to_dict()`` of the settings it refines.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from cardgrid.models.page import Page, PageGroup
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import ExtractionSettings, OutputSettings


def merge_settings(base: Mapping[str, Any], override: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Recursive dict merge; *override* wins, nested dicts are merged key by key."""
    merged = dict(base)
    for key, value in (override or {}).items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


def group_for_page(page_index: int, groups: Iterable[PageGroup],
                   page: Optional[Page] = None) -> Optional[PageGroup]:
    """The group a page belongs to: its own ``group_id`` first, then membership by index."""
    groups = list(groups)
    if page is not None and page.group_id is not None:
        for group in groups:
            if group.group_id == page.group_id:
                return group
    for group in groups:
        if group.contains(page_index):
            return group
    return None


def resolve_mode(global_mode: ProcessingMode, group: Optional[PageGroup] = None,
                 page: Optional[Page] = None) -> ProcessingMode:
    mode = global_mode
    if group is not None and group.mode is not None:
        mode = group.mode
    if page is not None and page.mode is not None:
        mode = page.mode
    return mode


def effective_extraction(global_settings: ExtractionSettings,
                         group: Optional[PageGroup] = None) -> ExtractionSettings:
    if group is None or not group.extraction_overrides:
        return global_settings
    return ExtractionSettings.from_dict(
        merge_settings(global_settings.to_dict(), group.extraction_overrides)
    )


def effective_output(global_settings: OutputSettings,
                     group: Optional[PageGroup] = None) -> OutputSettings:
    if group is None or not group.output_overrides:
        return global_settings
    return OutputSettings.from_dict(
        merge_settings(global_settings.to_dict(), group.output_overrides)
    )
