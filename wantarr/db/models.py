"""SQLAlchemy models for database."""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class MediaItemRecord(Base):
    """Item wanted mis en cache, une ligne par (pvr, liste, item)."""
    __tablename__ = "media_items"
    __table_args__ = (
        UniqueConstraint("pvr_name", "list_kind", "item_id", name="uq_media_item"),
    )

    id = Column(Integer, primary_key=True, index=True)
    pvr_name = Column(String, nullable=False, index=True)  # nom du PVR en minuscules
    list_kind = Column(String, nullable=False)  # missing, cutoff
    item_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)  # rang dans la wanted list du serveur
    air_date_utc = Column(DateTime(timezone=True), nullable=True)
    last_search = Column(DateTime(timezone=True), nullable=True)
