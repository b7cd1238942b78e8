"""SQLAlchemy 2.0 DeclarativeBase with consistent naming conventions."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Constraint names stay stable across SQLite and PostgreSQL
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    metadata = MetaData(naming_convention=convention)
