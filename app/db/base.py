"""Declarative base shared by the member directory and subscription models."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
