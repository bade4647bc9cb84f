"""SQLAlchemy models for the Algebra Word Puzzle service."""
from datetime import datetime
from sqlalchemy import Column, Integer, Text, DateTime, CheckConstraint, Index
from app.db.database import Base


class RankingEntry(Base):
    """Leaderboard row for one player.

    ``name`` is the upsert key but is unique by convention only: two racing
    first submissions for the same name can both insert.
    """
    __tablename__ = "ranking"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    score = Column(Integer, CheckConstraint("score >= 0", name="ck_ranking_score_non_negative"), nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_ranking_name', 'name'),
        Index('idx_ranking_score', 'score'),
    )


class ClientSnapshot(Base):
    """Per-client key/value record used to resume a game after a reload."""
    __tablename__ = "client_snapshots"

    client_id = Column(Text, primary_key=True)  # value of the awp_cid cookie
    key = Column(Text, primary_key=True)  # 'puzzle_state' or 'player_name'
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
