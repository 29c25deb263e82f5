"""存储源配置的请求与响应模型。"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope

StorageType = Literal["S3", "LOCAL", "MEMORY"]


class _ConnectionFields(BaseModel):
    # S3
    region: Optional[str] = None
    bucket_name: Optional[str] = None
    path_prefix: Optional[str] = None
    endpoint_url: Optional[str] = None
    # LOCAL
    local_root_path: Optional[str] = None


class StorageConfigCreate(_ConnectionFields):
    name: str = Field(..., min_length=1, max_length=100)
    type: StorageType
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


class StorageConfigUpdate(_ConnectionFields):
    """只提交需要修改的字段。"""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[StorageType] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


class StorageConfigData(_ConnectionFields):
    id: int
    name: str
    type: StorageType
    status: Optional[Literal["connected", "error"]] = None
    created_at: Optional[str] = None


StorageConfigListResponse = ResponseEnvelope[list[StorageConfigData]]
StorageConfigMutationResponse = ResponseEnvelope[Optional[StorageConfigData]]
StorageTestResponse = ResponseEnvelope[dict]
