"""
SQLAlchemy ORM model for the RTU receive log.

The table is written by the ingestion gateway (outside this service) and is
only read here. Column names keep the gateway's camelCase spelling.

CHANGELOG:
- 2026-10-18: Initial creation
"""

import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all ORM models."""

    pass


class RtuReceiveLog(Base):
    """One frame received from a field RTU.

    Attributes:
        time: Receive timestamp in UTC.
        rtu_imei: Device identifier (IMEI) of the sending RTU.
        body: Frame as space-separated two-digit hex bytes.
        body_length: Frame length in bytes as recorded by the gateway
            (nullable on legacy rows).
    """

    __tablename__ = "log_rtureceivelog"
    __table_args__ = {"schema": "public"}

    time: Mapped[datetime.datetime] = mapped_column(
        "time",
        DateTime(timezone=True),
        primary_key=True,
        nullable=False,
    )
    rtu_imei: Mapped[str] = mapped_column(
        "rtuImei",
        Text,
        primary_key=True,
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    body_length: Mapped[int | None] = mapped_column(
        "bodyLength", Integer, nullable=True
    )

    def __repr__(self) -> str:
        """Return string representation of the RtuReceiveLog."""
        return (
            f"RtuReceiveLog(rtu_imei={self.rtu_imei!r}, "
            f"time={self.time!r}, body_length={self.body_length!r})"
        )
