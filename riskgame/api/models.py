"""
SQLAlchemy models for games and their move log.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)  # uuid
    name = Column(String(128), nullable=False)  # user-defined game name
    status = Column(String(32), nullable=False, default="waiting")  # waiting | setup | playing | finished
    version = Column(Integer, nullable=False, default=0)  # bumped on every write (compare-and-swap)
    game_state = Column(Text, nullable=False)  # JSON string of full game state
    start_state = Column(Text, nullable=True)  # JSON snapshot the move log replays from
    start_version = Column(Integer, nullable=False, default=0)  # version of start_state
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    moves = relationship(
        "GameMove",
        back_populates="game",
        order_by="GameMove.seq",
        cascade="all, delete-orphan",
    )


class GameMove(Base):
    """
    Log of applied moves. Replaying the moves after Game.start_version from
    Game.start_state rebuilds the game. Undo deletes the newest row.
    """
    __tablename__ = "game_moves"
    __table_args__ = (UniqueConstraint("game_id", "seq", name="uq_game_moves_game_seq"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)  # game version the move produced
    move = Column(Text, nullable=False)  # JSON {type, player, payload}
    events = Column(Text, nullable=True)  # JSON list of events the move produced
    created_at = Column(DateTime, default=datetime.utcnow)

    game = relationship("Game", back_populates="moves")
