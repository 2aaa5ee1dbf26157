from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from hotel_pricing.database import Base


class HotelSettings(Base):
    __tablename__ = "hotel_settings"

    id = Column(Integer, primary_key=True, default=1)
    hotel_name = Column(String(100), default="Hotel")
    whatsapp_number = Column(String(30), nullable=True)  # operator channel for alerts/approvals

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @classmethod
    def get(cls, db):
        return db.query(cls).order_by(cls.id).first()
