"""业务包注册表，``APP_ACTIVE_PACKAGE`` 决定启动哪一个。"""

from __future__ import annotations

import os
from typing import Dict

from . import drive
from .types import AppPackage

DEFAULT_PACKAGE = "drive"

PACKAGE_REGISTRY: Dict[str, AppPackage] = {}


def register_package(package: AppPackage) -> AppPackage:
    if package.name in PACKAGE_REGISTRY:
        raise RuntimeError(f"业务包 '{package.name}' 重复注册")
    PACKAGE_REGISTRY[package.name] = package
    return package


register_package(drive.package)


def get_active_package() -> AppPackage:
    name = os.getenv("APP_ACTIVE_PACKAGE") or DEFAULT_PACKAGE
    package = PACKAGE_REGISTRY.get(name)
    if package is None:
        raise RuntimeError(f"未找到业务包 '{name}'，可用选项：{', '.join(sorted(PACKAGE_REGISTRY))}")
    return package


__all__ = ["DEFAULT_PACKAGE", "PACKAGE_REGISTRY", "get_active_package", "register_package"]
