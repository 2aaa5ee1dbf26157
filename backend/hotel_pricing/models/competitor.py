from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Float, ForeignKey, Index
from sqlalchemy.sql import func
from hotel_pricing.database import Base


class CompetitorRoom(Base):
    __tablename__ = "competitor_rooms"

    id = Column(Integer, primary_key=True, index=True)
    competitor_hotel = Column(String(100), nullable=False)
    room_name = Column(String(100), nullable=False)

    # Our room this one is benchmarked against
    comparable_room_id = Column(String(36), ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CompetitorPriceSurvey(Base):
    __tablename__ = "competitor_price_surveys"

    id = Column(Integer, primary_key=True, index=True)
    competitor_room_id = Column(Integer, ForeignKey("competitor_rooms.id", ondelete="CASCADE"), nullable=False)
    price = Column(Float, nullable=False)
    survey_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_competitor_survey_lookup', 'competitor_room_id', 'survey_date'),
    )
