from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, func
from taskhub.models.authz import Base


class Stage(Base):
    __tablename__ = 'stages'
    # Status constants
    STATUS_PENDING = 'PENDING'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_BLOCKED = 'BLOCKED'
    ALL_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_BLOCKED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    duration_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    completed_at = mapped_column(DateTime(timezone=True), nullable=True)
    project = relationship('Project', back_populates='stages')
    # passive_deletes: detaching tasks is done explicitly by the stage service
    tasks = relationship('Task', back_populates='stage', passive_deletes=True)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

# Status flow: PENDING -> IN_PROGRESS -> COMPLETED; BLOCKED <-> IN_PROGRESS; COMPLETED is terminal.
