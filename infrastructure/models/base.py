"""
ORM 声明基类；alembic 迁移与开发环境建表共用同一份 metadata
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


metadata = Base.metadata
