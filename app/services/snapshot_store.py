"""Per-client key/value snapshots used to resume a game after a reload."""
import logging
from datetime import datetime
from typing import Callable, Optional
from pydantic import ValidationError
from sqlalchemy.orm import Session
from app.constants import GAME_STATE_KEY, PLAYER_NAME_KEY
from app.db.models import ClientSnapshot
from app.services.puzzle import SavedGameState

logger = logging.getLogger(__name__)


class SqlSnapshotStore:
    """Key/value rows scoped by client id. A missing key is a normal first run."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, client_id: str, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            row = db.get(ClientSnapshot, (client_id, key))
            return row.value if row else None
        finally:
            db.close()

    def set(self, client_id: str, key: str, value: str) -> None:
        """Overwrite ``key`` for the client."""
        db = self._session_factory()
        try:
            row = db.get(ClientSnapshot, (client_id, key))
            if row:
                row.value = value
                row.updated_at = datetime.utcnow()
            else:
                db.add(ClientSnapshot(client_id=client_id, key=key, value=value))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def load_game_state(self, client_id: str) -> Optional[SavedGameState]:
        """Saved game for the client, or None if absent or undecodable."""
        raw = self.get(client_id, GAME_STATE_KEY)
        if raw is None:
            return None
        try:
            return SavedGameState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable saved game: {e}", extra={"client_id": client_id})
            return None

    def save_game_state(self, client_id: str, state: SavedGameState) -> None:
        self.set(client_id, GAME_STATE_KEY, state.model_dump_json())

    def load_player_name(self, client_id: str) -> Optional[str]:
        name = self.get(client_id, PLAYER_NAME_KEY)
        return name if name and name.strip() else None

    def save_player_name(self, client_id: str, name: str) -> None:
        self.set(client_id, PLAYER_NAME_KEY, name)
