from __future__ import annotations
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, DateTime, text
from typing import Optional

Base = declarative_base()


class User(Base):
    __tablename__ = 'users'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    # Raw role as stored upstream (ADMIN, PROJECT_MANAGER, EMPLOYEE, VIEWER...);
    # normalized by taskhub.services.roles at the JWT boundary only.
    role: Mapped[str] = mapped_column(String(32), nullable=False, default='EMPLOYEE')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    setting = relationship('UserSetting', back_populates='owner', uselist=False, cascade='all, delete-orphan')
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)


class UserSetting(Base):
    __tablename__ = 'user_settings'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    language: Mapped[str] = mapped_column(String(8), default='fr')
    timezone: Mapped[str] = mapped_column(String(64), default='Europe/Paris')
    theme: Mapped[str] = mapped_column(String(16), default='light')
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    items_per_page: Mapped[int] = mapped_column(Integer, default=10)
    owner = relationship('User', back_populates='setting')
    updated_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    EDITABLE_FIELDS = ('language', 'timezone', 'theme', 'notifications_enabled', 'email_notifications', 'items_per_page')
