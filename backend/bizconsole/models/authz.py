from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, UniqueConstraint, DateTime, func
from typing import Optional

Base = declarative_base()


class Identity(Base):
    __tablename__ = 'identities'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)


class RevokedToken(Base):
    __tablename__ = 'revoked_tokens'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    jti: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    identity_id: Mapped[int] = mapped_column(ForeignKey('identities.id', ondelete='CASCADE'), nullable=False)
    revoked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Role(Base):
    __tablename__ = 'roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey('businesses.id', ondelete='CASCADE'), index=True, nullable=False)
    # Not unique per business: duplicate names are accepted as-is
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    permissions = relationship('Permission', back_populates='role', passive_deletes=True)
    employee_roles = relationship('EmployeeRole', back_populates='role', passive_deletes=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Permission(Base):
    __tablename__ = 'permissions'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey('roles.id', ondelete='CASCADE'), index=True, nullable=False)
    module: Mapped[str] = mapped_column(String(32), nullable=False)
    create_permission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_permission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    update_permission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delete_permission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    role = relationship('Role', back_populates='permissions')

    __table_args__ = (UniqueConstraint('role_id', 'module', name='uq_permission_role_module'),)

    def capabilities(self):
        return {
            'create': bool(self.create_permission),
            'read': bool(self.read_permission),
            'update': bool(self.update_permission),
            'delete': bool(self.delete_permission),
        }


class EmployeeRole(Base):
    __tablename__ = 'employee_roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey('roles.id', ondelete='CASCADE'), nullable=False)
    __table_args__ = (UniqueConstraint('employee_id', 'role_id', name='uq_employee_role'),)
    employee = relationship('Employee', back_populates='employee_roles')
    role = relationship('Role', back_populates='employee_roles')
