"""Runtime around puzzle sessions: snapshots, ranking syncs and scheduled wake-ups."""
import asyncio
import logging
import random
import time
from typing import Callable, Dict, Optional, Sequence, Set
from sqlalchemy.exc import SQLAlchemyError
from app.constants import LEADERBOARD_TOP_SIZE
from app.services.puzzle import AnswerOutcome, Difficulty, PuzzlePhase, PuzzleSession
from app.services.ranking_sync import RankingSynchronizer
from app.services.snapshot_store import SqlSnapshotStore

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Owns one PuzzleSession per client and drives everything around it.

    - Sessions are opened lazily, after the ranking store has answered a
      connectivity check (StoreUnavailableError until it does).
    - Every state change is written to the snapshot store.
    - Every answer schedules a ranking upsert as a background task; play
      never waits for it, so writes for one player may overlap or reorder.
    - A solved word schedules advance_after_hold on the event loop.
    - Sessions unused for ``idle_timeout`` seconds are dropped from memory
      whenever a new client arrives; their snapshot brings them back.
    """

    def __init__(
        self,
        synchronizer: RankingSynchronizer,
        snapshot_store: SqlSnapshotStore,
        resume_on_return: bool = True,
        word_complete_delay: float = 3.0,
        word_lists: Dict[Difficulty, Sequence[str]] = None,
        rng: random.Random = None,
        idle_timeout: float = 1800.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.synchronizer = synchronizer
        self.snapshot_store = snapshot_store
        self.resume_on_return = resume_on_return
        self.word_complete_delay = word_complete_delay
        self.word_lists = word_lists
        self.rng = rng
        self.idle_timeout = idle_timeout
        self._clock = clock
        self.store_ready = False
        self.sessions: Dict[str, PuzzleSession] = {}
        self.suggested_names: Dict[str, Optional[str]] = {}
        self._last_seen: Dict[str, float] = {}
        self._opening: Dict[str, asyncio.Lock] = {}
        self._pending_syncs: Set[asyncio.Task] = set()
        self._wakeups: Dict[str, asyncio.TimerHandle] = {}

    async def ensure_store_ready(self) -> None:
        """
        Run the startup connectivity check until it succeeds once.

        Raises:
            StoreUnavailableError: If the ranking store is unreachable. The
                next call retries.
        """
        if self.store_ready:
            return
        await self.synchronizer.check_connectivity()
        self.store_ready = True
        await self.synchronizer.refresh_leaderboards()

    async def get_session(self, client_id: str) -> PuzzleSession:
        """Session for ``client_id``, opened on first use."""
        await self.ensure_store_ready()

        session = self.sessions.get(client_id)
        if session is None:
            session = await self._open_once(client_id)
        elif session.tick():
            self._persist(client_id, session)

        self._last_seen[client_id] = self._clock()
        return session

    async def _open_once(self, client_id: str) -> PuzzleSession:
        # Concurrent first requests from one client share a single open
        lock = self._opening.setdefault(client_id, asyncio.Lock())
        try:
            async with lock:
                session = self.sessions.get(client_id)
                if session is None:
                    self.evict_idle()
                    session = await self._open_session(client_id)
                    self.sessions[client_id] = session
                    self._persist(client_id, session)
                    self.synchronizer.start_periodic_refresh()
                return session
        finally:
            if self._opening.get(client_id) is lock and not lock.locked():
                del self._opening[client_id]

    def evict_idle(self, now: float = None) -> int:
        """
        Drop sessions not used for ``idle_timeout`` seconds.

        Every state change is already in the snapshot store, so an evicted
        client is rebuilt on its next request.

        Returns:
            Number of sessions evicted
        """
        now = self._clock() if now is None else now
        idle = [
            client_id for client_id, seen in self._last_seen.items()
            if now - seen >= self.idle_timeout
        ]
        for client_id in idle:
            self.sessions.pop(client_id, None)
            self.suggested_names.pop(client_id, None)
            self._last_seen.pop(client_id, None)
            handle = self._wakeups.pop(client_id, None)
            if handle is not None:
                handle.cancel()

        if idle:
            logger.info(f"Evicted {len(idle)} idle sessions, {len(self.sessions)} remain")
        return len(idle)

    def _new_session(self) -> PuzzleSession:
        return PuzzleSession(
            word_lists=self.word_lists,
            rng=self.rng,
            word_complete_delay=self.word_complete_delay
        )

    async def _open_session(self, client_id: str) -> PuzzleSession:
        session = self._new_session()
        saved_name = self.snapshot_store.load_player_name(client_id)
        self.suggested_names[client_id] = saved_name

        if not (self.resume_on_return and saved_name):
            logger.info("Starting new game, waiting for player name", extra={"client_id": client_id})
            return session

        saved_state = self.snapshot_store.load_game_state(client_id)
        if saved_state is not None:
            saved_state.player_name = saved_name
            session.restore(saved_state, resume=True)
        else:
            session.set_name(saved_name)
            stored = await self.synchronizer.load_player(saved_name)
            if stored is not None:
                session.ledger.reset(stored.score)

        logger.info(
            f"Resumed game for returning player at word {session.current_word_index}",
            extra={"client_id": client_id, "player_name": saved_name, "difficulty": session.difficulty.value}
        )
        return session

    def _persist(self, client_id: str, session: PuzzleSession) -> None:
        try:
            self.snapshot_store.save_game_state(client_id, session.to_saved_state())
            if session.player_name:
                self.snapshot_store.save_player_name(client_id, session.player_name)
        except SQLAlchemyError as e:
            logger.error(f"Could not save game snapshot: {e}", extra={"client_id": client_id})

    # Commands

    async def set_name(self, client_id: str, name: str) -> PuzzleSession:
        """
        Set the player's name. When the name changes, a stored ranking score
        for the new name becomes the session score.

        Raises:
            InvalidNameError: If the name is empty after trimming
        """
        session = await self.get_session(client_id)
        previous_name = session.player_name
        cleaned = session.set_name(name)

        if cleaned != previous_name:
            stored = await self.synchronizer.load_player(cleaned)
            if stored is not None:
                session.ledger.reset(stored.score)

        self.suggested_names[client_id] = cleaned
        self._persist(client_id, session)
        logger.info("Player name set", extra={"client_id": client_id, "player_name": cleaned})
        return session

    async def submit_answer(self, client_id: str, value) -> AnswerOutcome:
        """
        Submit an answer and sync the resulting score in the background.

        Raises:
            PuzzleStateError: If the session is not playing an equation
        """
        session = await self.get_session(client_id)
        outcome = session.submit_answer(value)
        self._persist(client_id, session)

        # Synced on wrong answers too so the ranking reflects the latest attempt
        self._schedule_sync(session.player_name, outcome.score)

        if outcome.word_completed:
            self._schedule_wakeup(client_id, session)

        logger.debug(
            f"Answer {'correct' if outcome.correct else 'wrong'}, score now {outcome.score}",
            extra={"client_id": client_id, "player_name": session.player_name, "score": outcome.score}
        )
        return outcome

    async def change_difficulty(self, client_id: str, difficulty: Difficulty) -> bool:
        session = await self.get_session(client_id)
        changed = session.change_difficulty(difficulty)
        if changed:
            self._persist(client_id, session)
            logger.info(
                "Difficulty changed",
                extra={"client_id": client_id, "difficulty": session.difficulty.value}
            )
        return changed

    def view(self, client_id: str) -> Dict:
        """Session view plus the cached inline leaderboard."""
        session = self.sessions[client_id]
        return {
            **session.view(),
            "suggested_name": self.suggested_names.get(client_id),
            "leaderboard": [player.to_dict() for player in self.synchronizer.cached(LEADERBOARD_TOP_SIZE)]
        }

    # Scheduling

    def _schedule_sync(self, name: str, score: int) -> None:
        task = asyncio.get_running_loop().create_task(self.synchronizer.upsert(name, score))
        self._pending_syncs.add(task)
        task.add_done_callback(self._pending_syncs.discard)

    def _schedule_wakeup(self, client_id: str, session: PuzzleSession) -> None:
        previous = self._wakeups.pop(client_id, None)
        if previous is not None:
            previous.cancel()
        self._wakeups[client_id] = asyncio.get_running_loop().call_later(
            session.word_complete_delay, self._wake, client_id, session.hold_id
        )

    def _wake(self, client_id: str, hold_id: int) -> None:
        self._wakeups.pop(client_id, None)
        session = self.sessions.get(client_id)
        if session is not None and session.advance_after_hold(hold_id):
            self._persist(client_id, session)
            if session.phase == PuzzlePhase.ALL_WORDS_COMPLETE:
                logger.info(
                    f"All {session.difficulty.value} words solved",
                    extra={"client_id": client_id, "player_name": session.player_name}
                )

    @property
    def pending_sync_count(self) -> int:
        return len(self._pending_syncs)

    async def drain(self) -> None:
        """Wait for every in-flight ranking sync to settle."""
        while self._pending_syncs:
            await asyncio.gather(*list(self._pending_syncs), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop timers and the refresh loop. In-flight syncs are left to finish on their own."""
        for handle in self._wakeups.values():
            handle.cancel()
        self._wakeups.clear()
        await self.synchronizer.stop_periodic_refresh()
        logger.info(f"Session manager stopped with {self.pending_sync_count} syncs in flight")
