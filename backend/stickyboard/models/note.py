from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from stickyboard.database import Base

DEFAULT_WIDTH = 250
DEFAULT_HEIGHT = 110


class StickyNote(Base):
    __tablename__ = "sticky_notes"

    id         = Column(Integer, primary_key=True, index=True)
    board_id   = Column(Integer, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id    = Column(Integer, ForeignKey("users.id"), nullable=False)
    name       = Column(String(100), nullable=False)
    text       = Column(Text, nullable=False, default="")
    color      = Column(String(20), nullable=False, default="#FFFFFF")
    position_x = Column(Float, nullable=False, default=0)
    position_y = Column(Float, nullable=False, default=0)
    width      = Column(Integer, nullable=False, default=DEFAULT_WIDTH)
    height     = Column(Integer, nullable=False, default=DEFAULT_HEIGHT)
    # Set on create and on content/title edits only; moves and resizes leave it alone
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    board = relationship("Board", back_populates="notes")
    creator = relationship("User")
