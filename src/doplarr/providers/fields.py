"""Request detail builders shared by the *arr backends."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Any

from doplarr.core.models import DropdownOption, FieldType, RequestDetail
from doplarr.errors import ConfigurationError


def usable(entries: list[dict[str, Any]], attribute: str) -> list[dict[str, Any]]:
    return [entry for entry in entries if entry.get(attribute)]


def select_configured(
    entries: list[dict[str, Any]], wanted: str | None, attribute: str, label: str
) -> list[dict[str, Any]]:
    """Reduce ``entries`` to the one whose ``attribute`` equals ``wanted``, if configured."""
    if wanted is None:
        return entries
    for entry in entries:
        if entry.get(attribute) == wanted:
            return [entry]
    available = ", ".join(str(entry.get(attribute)) for entry in entries if entry.get(attribute))
    raise ConfigurationError(f"{label} '{wanted}' not found. Available options: [{available}]")


def folder_and_profile_details(
    rootfolders: list[dict[str, Any]],
    quality_profiles: list[dict[str, Any]],
    *,
    root_folder_key: str,
    quality_profile_key: str,
) -> tuple[RequestDetail, RequestDetail]:
    rootfolder = RequestDetail(
        title="Root Folder",
        options=tuple(DropdownOption(title=entry["path"], id=entry.get("id")) for entry in rootfolders),
        metadata_key=root_folder_key,
    )
    quality_profile = RequestDetail(
        title="Quality Profile",
        options=tuple(DropdownOption(title=entry["name"], id=entry.get("id")) for entry in quality_profiles),
        metadata_key=quality_profile_key,
    )
    return rootfolder, quality_profile


def enum_detail[E: StrEnum](title: str, values: Sequence[E], titles: dict[E, str], metadata_key: str) -> RequestDetail:
    return RequestDetail(
        title=title,
        options=tuple(DropdownOption(title=titles[value], id=value.value) for value in values),
        metadata_key=metadata_key,
        field_type=FieldType.DROPDOWN,
    )
