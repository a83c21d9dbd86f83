"""
Database Models - Read Surface of the Platform Schema

The platform tables are owned and migrated by the main application; this
service only reads them. Column names follow the platform's camelCase
convention and are mapped to snake_case attributes.

Entities:
- Device / Sale: catalogue and sales, with price and manufacturing cost
- User / Profile: accounts with last-login tracking
- SecurityIncident: reported incidents with severity
- Zone / Environment: geofenced zones grouped by environment
- UserDeviceHistory / Log / HelpRequest: activity signals for usage reports
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class IncidentSeverity(str, Enum):
    """Security incident severity"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class DeviceStatus(str, Enum):
    """Device connection status"""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


# =============================================================================
# CATALOGUE & SALES
# =============================================================================

class Device(Base):
    """Wearable device sold to end users"""
    __tablename__ = "Device"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Optional[float]] = mapped_column(Float)
    manufacturing_cost: Mapped[Optional[float]] = mapped_column("manufacturingCost", Float)
    status: Mapped[str] = mapped_column(String(20), default=DeviceStatus.DISCONNECTED.value)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, server_default=func.now())

    sales: Mapped[List["Sale"]] = relationship(back_populates="device")


class Sale(Base):
    """A device sold to a buyer"""
    __tablename__ = "Sale"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    device_id: Mapped[int] = mapped_column("deviceId", ForeignKey("Device.id"), nullable=False)
    buyer_id: Mapped[Optional[int]] = mapped_column("buyerId", ForeignKey("User.id"))
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, server_default=func.now(), index=True)

    device: Mapped["Device"] = relationship(back_populates="sales")


# =============================================================================
# USERS
# =============================================================================

class User(Base):
    """Platform account (end user, helper, sales agent or admin)"""
    __tablename__ = "User"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(50))
    last_login: Mapped[Optional[datetime]] = mapped_column("lastLogin", DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, server_default=func.now())

    profile: Mapped[Optional["Profile"]] = relationship(back_populates="user", uselist=False)


class Profile(Base):
    """Personal details attached to a user"""
    __tablename__ = "Profile"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column("userId", ForeignKey("User.id"), unique=True, nullable=False)
    firstname: Mapped[Optional[str]] = mapped_column(String(100))
    lastname: Mapped[Optional[str]] = mapped_column(String(100))

    user: Mapped["User"] = relationship(back_populates="profile")


class SecurityIncident(Base):
    """Reported security incident"""
    __tablename__ = "SecurityIncident"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    severity: Mapped[Optional[IncidentSeverity]] = mapped_column(
        SQLEnum(IncidentSeverity, name="IncidentSeverity")
    )
    description: Mapped[Optional[str]] = mapped_column(String(500))
    reported_at: Mapped[datetime] = mapped_column("reportedAt", DateTime, nullable=False, index=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column("resolvedAt", DateTime)
    is_resolved: Mapped[bool] = mapped_column("isResolved", Boolean, default=False)


# =============================================================================
# ZONES
# =============================================================================

class Environment(Base):
    """Physical environment (building, campus) containing zones"""
    __tablename__ = "Environment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    zones: Mapped[List["Zone"]] = relationship(back_populates="environment")


class Zone(Base):
    """Geofenced zone inside an environment"""
    __tablename__ = "Zone"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    env_id: Mapped[int] = mapped_column("envId", ForeignKey("Environment.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, server_default=func.now())

    environment: Mapped["Environment"] = relationship(back_populates="zones")


# =============================================================================
# ACTIVITY
# =============================================================================

class UserDeviceHistory(Base):
    """One use of a device by a user"""
    __tablename__ = "UserDeviceHistory"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column("userId", ForeignKey("User.id"), nullable=False)
    device_id: Mapped[int] = mapped_column("deviceId", ForeignKey("Device.id"), nullable=False)
    use_date: Mapped[datetime] = mapped_column("useDate", DateTime, nullable=False)


class Log(Base):
    """User action log entry"""
    __tablename__ = "Log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column("userId", ForeignKey("User.id"))
    action: Mapped[Optional[str]] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, server_default=func.now())


class HelpRequest(Base):
    """Assistance request raised by an end user"""
    __tablename__ = "HelpRequest"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column("userId", ForeignKey("User.id"))
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, server_default=func.now())
