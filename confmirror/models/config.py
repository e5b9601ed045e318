"""Remote configuration tables."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from confmirror.models.base import Base


class MainConfig(Base):
    """The main application config document; one well-known row."""

    __tablename__ = "main_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    modified_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AdapterConfig(Base):
    """An adapter config document addressed by (category, name)."""

    __tablename__ = "adapter_config"
    __table_args__ = (UniqueConstraint("category", "name", name="uq_adapter_config_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    modified_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
