"""Tab object as it travels over the wire."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Tab(BaseModel):
    """A browser tab. Field names serialize in camelCase; unknown fields are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int
    index: int = 0
    window_id: int = Field(default=1, alias="windowId")
    opener_tab_id: int | None = Field(default=None, alias="openerTabId")
    highlighted: bool = False
    active: bool = False
    pinned: bool = False
    last_accessed: int = Field(default=0, alias="lastAccessed")
    audible: bool = False
    muted: bool = False
    url: str = "about:blank"
    title: str = ""
    fav_icon_url: str | None = Field(default=None, alias="favIconUrl")
    status: str = "complete"
    discarded: bool = False
    incognito: bool = False
    hidden: bool = False
    is_article: bool = Field(default=False, alias="isArticle")
    is_in_reader_mode: bool = Field(default=False, alias="isInReaderMode")
    attention: bool = False
    successor_tab_id: int | None = Field(default=None, alias="successorTabId")

    def wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def with_delta(self, delta: dict[str, Any]) -> Tab:
        """Copy of this tab with the fields of a wire-format ``updated`` delta applied."""
        return Tab.model_validate({**self.wire(), **delta})
