"""SQLAlchemy ORM base shared by every table of the engine."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base; importing the models package registers every table."""

    pass
