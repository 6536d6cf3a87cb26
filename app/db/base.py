"""
SQLAlchemy declarative base shared by every ORM model.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    # Models annotate plain Column() attributes with their Python types
    __allow_unmapped__ = True
