import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Float, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from hotel_pricing.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Room(Base):
    """
    A sellable room type. Owned by the admin CRUD side of the platform;
    the pricing engine only reads it, except when an approved price change
    is applied to `base_price`.
    """
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)

    base_price = Column(Float, nullable=False)
    allotment = Column(Integer, default=1, nullable=False)  # rentable units

    # Auto-pricing bounds (null = unbounded)
    min_auto_price = Column(Float, nullable=True)
    max_auto_price = Column(Float, nullable=True)
    auto_pricing_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    bookings = relationship("Booking", back_populates="room")

    def __repr__(self) -> str:
        return f"<Room {self.id}: {self.name} base={self.base_price}>"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)  # exclusive: the guest leaves that morning
    status = Column(String(20), default="confirmed", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    room = relationship("Room", back_populates="bookings")
    units = relationship("BookingRoom", back_populates="booking", cascade="all, delete-orphan")


class BookingRoom(Base):
    """One booked physical unit of a room type."""
    __tablename__ = "booking_rooms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    room_number = Column(String(20), nullable=True)

    booking = relationship("Booking", back_populates="units")


# Booking statuses that never hold inventory
INACTIVE_BOOKING_STATUSES = ("cancelled", "rejected")
