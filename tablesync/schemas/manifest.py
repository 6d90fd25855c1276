"""File manifest schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ManifestEntryResponse(BaseModel):
    """One file of a manifest."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    content_length: int = Field(alias="contentLength", ge=0)
    content_type: str = Field(alias="contentType")
    md5hash: str
    download_url: str = Field(alias="downloadUrl")


class ManifestResponse(BaseModel):
    """The files of one manifest scope for a client version."""

    model_config = ConfigDict(populate_by_name=True)

    files: list[ManifestEntryResponse] = Field(default_factory=list)
    manifest_etag: str | None = Field(default=None, alias="manifestETag")


class FileUploadResponse(BaseModel):
    """Result of storing a file."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    md5hash: str
    content_length: int = Field(alias="contentLength", ge=0)
    manifest_etag: str | None = Field(default=None, alias="manifestETag")
