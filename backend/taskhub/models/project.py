from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Date, DateTime, ForeignKey, func
from taskhub.models.authz import Base


class Project(Base):
    __tablename__ = 'projects'
    STATUS_PLANNING = 'PLANNING'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_ON_HOLD = 'ON_HOLD'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'
    ALL_STATUSES = (STATUS_PLANNING, STATUS_IN_PROGRESS, STATUS_ON_HOLD, STATUS_COMPLETED, STATUS_CANCELLED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PLANNING, index=True)
    manager_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date = mapped_column(Date, nullable=True)
    due_date = mapped_column(Date, nullable=True)
    stages = relationship('Stage', back_populates='project', cascade='all, delete-orphan', order_by='Stage.order')
    tasks = relationship('Task', back_populates='project', cascade='all, delete-orphan')
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
