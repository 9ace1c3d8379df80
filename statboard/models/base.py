"""Declarative base shared by every Statboard table."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
