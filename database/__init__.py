"""数据库模块

对外主要暴露 DatabaseManager（统一门面），子仓库与模型可按需单独导入。
"""
from .manager import DatabaseManager
from .connection import DatabaseConnection

__all__ = ["DatabaseManager", "DatabaseConnection"]
