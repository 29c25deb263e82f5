"""文件管理 - 列表、文件夹、收藏与分享的请求/响应模型。"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class EntryData(BaseModel):
    id: str
    key: str
    name: str
    kind: Literal["file", "directory"]
    type: str
    parent: list[str] = Field(default_factory=list)
    size: Optional[int] = None
    sizeText: Optional[str] = None
    lastModified: Optional[str] = None
    modified: Optional[str] = None
    starred: bool = False


class ListingData(BaseModel):
    path: list[str]
    prefix: str
    directories: list[EntryData]
    files: list[EntryData]


class StarredData(BaseModel):
    directories: list[EntryData]
    files: list[EntryData]


class UploadResult(BaseModel):
    filename: Optional[str] = None
    status: Literal["success", "error"]
    message: Optional[str] = None
    entry: Optional[EntryData] = None


class UploadData(BaseModel):
    results: list[UploadResult]


class FolderCreateBody(BaseModel):
    name: str = Field(..., min_length=1)


class StarBody(BaseModel):
    storageId: int = Field(..., ge=1)
    kind: Literal["file", "directory"]
    key: str = Field(..., min_length=1)
    starred: bool


class ShareBody(BaseModel):
    storageId: int = Field(..., ge=1)
    key: str = Field(..., min_length=1)
    # 秒；缺省为 7 天
    expiresIn: Optional[int] = Field(None, ge=1)


class LinkData(BaseModel):
    url: str
    expiresAt: Optional[str] = None
    shareId: Optional[str] = None


FilesListResponse = ResponseEnvelope[ListingData]
UploadResponse = ResponseEnvelope[UploadData]
EntryResponse = ResponseEnvelope[EntryData]
StarredListResponse = ResponseEnvelope[StarredData]
LinkResponse = ResponseEnvelope[LinkData]
FilesMutationResponse = ResponseEnvelope[Any]
