"""
Wastebin: Paste SQLAlchemy Model
==================================

What:  ORM model describing the current (v1) `pastes` table.
Who:   `GET /install` creates it, the migrator copies its definition under a
       temporary name, Alembic's env.py reads its metadata.

Table layout:
    - uuid:    canonical upper-case identifier, primary key
    - date:    creation time as text, "%Y-%m-%dT%H:%M:%S%z" in UTC
    - raw:     paste body
    - mode:    highlighting mode sysname
    - fork_of: reserved reference to another paste's uuid (schema v1+, unused)

    Value columns are nullable, as in the original schema; a row with a NULL
    value is reported as corrupt when it is read back. `date` is text rather
    than a DATETIME so the stored format is fixed and independent of the
    driver. Because every value is UTC with the same "+0000" suffix, text
    order equals time order and the `date` index serves the listing query.
"""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wastebin.database import Base

SCHEMA_VERSION = 1


class PasteRecord(Base):
    """
    A stored paste row.

    The store never selects whole records; it selects named columns so that
    it keeps working against a v0 table that has no `fork_of` column yet.
    """

    __tablename__ = "pastes"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True)

    # index=True leaves the index unnamed in the model; SQLAlchemy derives
    # "ix_<table>_date" at DDL time, so a copy under a temporary table name
    # gets its own index name
    date: Mapped[Optional[str]] = mapped_column(String(24), nullable=True, index=True)

    raw: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    mode: Mapped[Optional[str]] = mapped_column(String(31), nullable=True)

    fork_of: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    def __repr__(self) -> str:
        return f"<PasteRecord(uuid={self.uuid}, mode='{self.mode}', date='{self.date}')>"
