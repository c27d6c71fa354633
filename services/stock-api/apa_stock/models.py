"""SQLAlchemy models for the stock API service.

Each table plays the role of a document collection. Movements keep a weak
reference to their stock entry (``entry_id`` without a foreign key) plus a
snapshot of the entry's labels taken when the movement was written.
"""

import uuid

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StockEntry(Base):
    """An inbound batch of material with a tracked available quantity."""

    __tablename__ = "stock_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date_iso = Column(Date, nullable=False)
    type = Column(String(64), nullable=False)
    description = Column(String(255), nullable=False)
    reference = Column(String(255), nullable=False, default="")
    quantity_received = Column(Integer, nullable=False)
    quantity_available = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)
    created_by = Column(Uuid)
    created_by_name = Column(String(128), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    __table_args__ = (Index("stock_entries_date_idx", date_iso),)

    @property
    def label(self) -> str:
        return f"{self.type or ''} · {self.description or ''}"


class Assignment(Base):
    """Stock issued to a worker."""

    __tablename__ = "assignments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date_iso = Column(Date, nullable=False)
    entry_id = Column(Uuid, nullable=False)
    entry_type = Column(String(64), nullable=False, default="")
    entry_desc = Column(String(255), nullable=False, default="")
    entry_label = Column(String(330), nullable=False, default="")
    worker = Column(String(128), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False)
    created_by = Column(Uuid)
    created_by_name = Column(String(128), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    __table_args__ = (Index("assignments_entry_idx", entry_id),)


class Scrap(Base):
    """Stock written off."""

    __tablename__ = "scrap"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date_iso = Column(Date, nullable=False)
    entry_id = Column(Uuid, nullable=False)
    entry_type = Column(String(64), nullable=False, default="")
    entry_desc = Column(String(255), nullable=False, default="")
    entry_label = Column(String(330), nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    reason = Column(String(128), nullable=False)
    detail = Column(Text, nullable=False, default="")
    version = Column(Integer, nullable=False)
    created_by = Column(Uuid)
    created_by_name = Column(String(128), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    __table_args__ = (Index("scrap_entry_idx", entry_id),)


class User(Base):
    """An employee account. ``role`` is one of admin, operator, consulta."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    first = Column(String(64), nullable=False, default="")
    last = Column(String(64), nullable=False, default="")
    name = Column(String(128), nullable=False)
    role = Column(String(16), nullable=False, default="consulta")
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Uuid)
    created_by_name = Column(String(128), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __mapper_args__ = {"eager_defaults": True}


class Request(Base):
    """An internal request raised by any user and answered by staff."""

    __tablename__ = "requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(64), nullable=False)
    text = Column(Text, nullable=False)
    priority = Column(String(16), nullable=False, default="Normal")
    status = Column(String(16), nullable=False, default="Pendiente")
    response = Column(Text, nullable=False, default="")
    created_by = Column(Uuid)
    created_by_name = Column(String(128), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    responded_by = Column(Uuid)
    responded_by_name = Column(String(128))
    responded_at = Column(DateTime)

    __mapper_args__ = {"eager_defaults": True}


class Audit(Base):
    __tablename__ = "audit"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entity = Column(String(32), nullable=False)
    entity_id = Column(String(255), nullable=False)
    action = Column(String(32), nullable=False)
    payload_json = Column(JSON, nullable=False, default=dict)
    user_id = Column(Uuid)
    ts = Column(DateTime, nullable=False, server_default=func.now())

    __mapper_args__ = {"eager_defaults": True}
