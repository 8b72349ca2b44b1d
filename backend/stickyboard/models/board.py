from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stickyboard.database import Base


class Board(Base):
    __tablename__ = "boards"
    __table_args__ = (
        # password present iff the board is private
        CheckConstraint(
            "(is_private AND password_hash IS NOT NULL) OR (NOT is_private AND password_hash IS NULL)",
            name="ck_board_password_iff_private",
        ),
    )

    id          = Column(Integer, primary_key=True, index=True)
    name        = Column(String(100), nullable=False)
    tag         = Column(String(50), nullable=False, default="")
    is_private  = Column(Boolean, nullable=False, default=False)
    password_hash = Column(String(128), nullable=True)
    user_id     = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at  = Column(DateTime(timezone=True), server_default=func.now())

    creator = relationship("User", back_populates="boards")
    notes = relationship(
        "StickyNote",
        back_populates="board",
        order_by="StickyNote.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
