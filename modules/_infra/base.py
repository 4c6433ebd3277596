"""Declarative base shared by every SQLAlchemy model in the application."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
