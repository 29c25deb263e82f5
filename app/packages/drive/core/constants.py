"""跨模块共享的固定取值。"""

from fastapi import status

HTTP_STATUS_OK = status.HTTP_200_OK
HTTP_STATUS_UNAUTHORIZED = status.HTTP_401_UNAUTHORIZED
HTTP_STATUS_FORBIDDEN = status.HTTP_403_FORBIDDEN
HTTP_STATUS_CONFLICT = status.HTTP_409_CONFLICT

ACCESS_TOKEN_TYPE = "bearer"

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_ADMIN_NICKNAME = "管理员"

# 存储源类型
STORAGE_TYPE_LOCAL = "LOCAL"
STORAGE_TYPE_S3 = "S3"
STORAGE_TYPE_MEMORY = "MEMORY"
STORAGE_TYPES = (STORAGE_TYPE_LOCAL, STORAGE_TYPE_S3, STORAGE_TYPE_MEMORY)

# 扁平键空间中的目录分隔符
PATH_DELIMITER = "/"

ENTRY_KIND_FILE = "file"
ENTRY_KIND_DIRECTORY = "directory"

# 临时令牌用途
TOKEN_PURPOSE_DOWNLOAD = "file_download"

# S3 DeleteObjects 单次请求上限
S3_DELETE_BATCH_SIZE = 1000
