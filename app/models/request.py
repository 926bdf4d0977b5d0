from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl, model_validator


class ScrapeRequest(BaseModel):
    url: Optional[HttpUrl] = None
    html: Optional[str] = Field(
        default=None,
        description="Raw markup to ingest instead of fetching *url*.",
    )
    tags: List[str] = Field(default_factory=list)
    template_id: Optional[str] = Field(
        default=None,
        description="Force a catalog template instead of scoring one.",
    )
    user_id: Optional[str] = None
    persist: bool = False
    """Write the rendered note into the vault (or the backup directory)."""

    @model_validator(mode="after")
    def _url_or_html(self) -> "ScrapeRequest":
        if self.url is None and not (self.html and self.html.strip()):
            raise ValueError("Either url or html must be provided.")
        return self


class ClipRequest(BaseModel):
    url: HttpUrl
    selection: Optional[str] = Field(
        default=None,
        description="Text selected in the browser; when set the page is not fetched.",
    )
    title: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None
