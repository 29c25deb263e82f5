"""Path utilities: translate UI paths into flat-key prefixes.

Rules shared by the namespace and file services:
- A path is a list of segments; root is the empty list;
- The prefix of a path is its segments joined by '/' plus a trailing '/', root is '';
- Directory keys end with '/', file keys never do.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

from app.packages.drive.core.constants import PATH_DELIMITER
from app.packages.drive.core.exceptions import ValidationError

_FORBIDDEN_SEGMENTS = {".", ".."}


def split_path(raw: Union[str, Sequence[str], None]) -> list[str]:
    """把 ``"/docs/img/"`` 或 ``["docs", "img"]`` 归一化为段列表，空段被忽略。"""
    if raw is None:
        return []
    if isinstance(raw, str):
        parts: Iterable[str] = raw.split(PATH_DELIMITER)
    else:
        parts = raw
    segments = [p.strip() for p in parts if p and p.strip()]
    for seg in segments:
        if seg in _FORBIDDEN_SEGMENTS or PATH_DELIMITER in seg:
            raise ValidationError(f"非法路径段: {seg}")
    return segments


def prefix_for(path: Union[str, Sequence[str], None]) -> str:
    segments = split_path(path)
    if not segments:
        return ""
    return PATH_DELIMITER.join(segments) + PATH_DELIMITER


def path_for_prefix(prefix: str) -> list[str]:
    return [seg for seg in prefix.split(PATH_DELIMITER) if seg]


def validate_name(name: str | None, *, label: str = "名称") -> str:
    """校验单个文件/文件夹名称：非空，不含分隔符与控制字符。"""
    value = (name or "").strip()
    if not value:
        raise ValidationError(f"{label}不能为空")
    if PATH_DELIMITER in value or value in _FORBIDDEN_SEGMENTS:
        raise ValidationError(f"{label}不合法: {value}")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in value):
        raise ValidationError(f"{label}不能包含控制字符")
    return value


def normalize_key(key: str | None) -> str:
    """去掉前导 '/'，保留目录键的结尾 '/'。"""
    value = (key or "").strip().lstrip(PATH_DELIMITER)
    for seg in value.split(PATH_DELIMITER):
        if seg in _FORBIDDEN_SEGMENTS:
            raise ValidationError(f"非法路径段: {seg}")
    return value


def is_directory_key(key: str) -> bool:
    return key.endswith(PATH_DELIMITER)
