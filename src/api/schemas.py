"""Request bodies accepted by the control surface.

Field names follow the camelCase JSON the dashboard sends. Settings are
dumped with ``exclude_unset`` so only supplied fields override the current
snapshot.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ClientIn(BaseModel):
    name: str = ""
    emoji: Optional[str] = None


class ArchiveIn(BaseModel):
    enabled: Optional[bool] = None
    start_at: Optional[Union[str, float]] = Field(default=None, alias="startAt")
    limit: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class SettingsIn(BaseModel):
    mode: Optional[str] = None
    emoji: Optional[str] = None
    reply_text: Optional[str] = Field(default=None, alias="replyText")
    threshold: Optional[float] = None
    cooldown: Optional[float] = None
    rate_limit: Optional[int] = Field(default=None, alias="rateLimit")
    required_terms: Optional[List[str]] = Field(default=None, alias="requiredTerms")
    excluded_terms: Optional[List[str]] = Field(default=None, alias="excludedTerms")
    normalize_arabic: Optional[bool] = Field(default=None, alias="normalizeArabic")
    enable_ocr: Optional[bool] = Field(default=None, alias="enableOCR")
    dry_run: Optional[bool] = Field(default=None, alias="dryRun")
    archive: Optional[ArchiveIn] = None
    # Older dashboards send flat archive fields.
    history_on_start: Optional[bool] = Field(default=None, alias="historyOnStart")
    archive_start: Optional[Union[str, float]] = Field(default=None, alias="archiveStart")
    history_limit: Optional[int] = Field(default=None, alias="historyLimit")

    model_config = ConfigDict(populate_by_name=True)

    def overrides(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


class StartRequest(BaseModel):
    clients: List[ClientIn] = Field(default_factory=list)
    settings: SettingsIn = Field(default_factory=SettingsIn)


class GroupSelectRequest(BaseModel):
    ids: List[Union[str, int]]


class HistoryScanRequest(BaseModel):
    start_at: Optional[Union[str, float]] = Field(default=None, alias="startAt")
    limit: Optional[int] = None
    groups: Optional[List[Union[str, int]]] = None

    model_config = ConfigDict(populate_by_name=True)
