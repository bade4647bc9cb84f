"""Ranking store: the operation shapes the synchronizer relies on, over SQLAlchemy."""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy import desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.db.models import RankingEntry


class RankingStoreError(Exception):
    """Any failure of a ranking store operation."""


class StoreUnavailableError(RankingStoreError):
    """The ranking store cannot be reached at all."""


@dataclass(frozen=True)
class StoredPlayer:
    """A ranking row as read back from the store."""
    id: int
    name: str
    score: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, entry: RankingEntry) -> "StoredPlayer":
        return cls(id=entry.id, name=entry.name, score=entry.score, created_at=entry.created_at)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "score": self.score,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }


class SqlRankingStore:
    """
    Ranking table access. Each call uses its own short-lived session.

    Methods are blocking; callers on the event loop run them in the threadpool.
    None of them combine into an atomic upsert.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _run(self, operation: str, fn, commit: bool = False):
        db = self._session_factory()
        try:
            result = fn(db)
            if commit:
                db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            raise RankingStoreError(f"Ranking store {operation} failed: {e}") from e
        finally:
            db.close()

    def count(self) -> int:
        """Number of ranking rows. Used as the connectivity check."""
        return self._run("count", lambda db: db.query(func.count(RankingEntry.id)).scalar() or 0)

    def find_by_name(self, name: str) -> Optional[StoredPlayer]:
        """First row with this exact name, or None."""
        def query(db: Session):
            entry = db.query(RankingEntry).filter(
                RankingEntry.name == name
            ).order_by(RankingEntry.id).first()
            return StoredPlayer.from_entry(entry) if entry else None

        return self._run("find_by_name", query)

    def get_by_id(self, player_id: int) -> Optional[StoredPlayer]:
        def query(db: Session):
            entry = db.get(RankingEntry, player_id)
            return StoredPlayer.from_entry(entry) if entry else None

        return self._run("get_by_id", query)

    def update_score(self, player_id: int, score: int) -> int:
        """Set the score of a row. Returns the number of rows matched."""
        return self._run(
            "update_score",
            lambda db: db.query(RankingEntry).filter(
                RankingEntry.id == player_id
            ).update({RankingEntry.score: score}, synchronize_session=False),
            commit=True
        )

    def insert(self, name: str, score: int) -> StoredPlayer:
        """Insert a new row and return it as stored."""
        def query(db: Session):
            entry = RankingEntry(name=name, score=score, created_at=datetime.utcnow())
            db.add(entry)
            db.flush()
            return StoredPlayer.from_entry(entry)

        return self._run("insert", query, commit=True)

    def top_n(self, n: int) -> List[StoredPlayer]:
        """Highest scores first, at most ``n`` rows."""
        return self._run(
            "top_n",
            lambda db: [
                StoredPlayer.from_entry(entry)
                for entry in db.query(RankingEntry).order_by(
                    desc(RankingEntry.score), RankingEntry.id
                ).limit(n).all()
            ]
        )
