"""Ranking synchronization: score upserts and cached leaderboard views."""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from fastapi.concurrency import run_in_threadpool
from app.constants import LEADERBOARD_SIZES
from app.services.ranking_store import RankingStoreError, StoreUnavailableError, StoredPlayer

logger = logging.getLogger(__name__)


class RankingSynchronizer:
    """
    Keeps the shared ranking store in step with local scores.

    upsert is a read-then-write over separate store calls and is NOT atomic:
    two submissions for the same name can both miss the lookup and both
    insert, or overwrite each other's update. The ranking is advisory, so the
    race is accepted; a caller's local ledger stays authoritative.

    Store failures never propagate out of upsert or refresh_top_n. They are
    logged and turned into None or an empty snapshot.
    """

    def __init__(self, store, sizes: Iterable[int] = LEADERBOARD_SIZES, refresh_interval: float = 60.0):
        self.store = store
        self.sizes = tuple(sizes)
        self.refresh_interval = refresh_interval
        self.last_refreshed_at: Optional[datetime] = None
        self._cache: Dict[int, List[StoredPlayer]] = {n: [] for n in self.sizes}
        self._refresh_task: Optional[asyncio.Task] = None

    async def _call(self, fn, *args):
        return await run_in_threadpool(fn, *args)

    async def check_connectivity(self) -> int:
        """
        Count ranking rows to prove the store is reachable.

        Returns:
            Number of ranking rows

        Raises:
            StoreUnavailableError: If the count fails
        """
        try:
            count = await self._call(self.store.count)
        except RankingStoreError as e:
            logger.error(f"Ranking store connectivity check failed: {e}")
            raise StoreUnavailableError(str(e)) from e

        logger.info(f"Ranking store reachable ({count} players)")
        return count

    async def upsert(self, name: str, score: int) -> Optional[StoredPlayer]:
        """
        Write ``score`` to the ranking row keyed by ``name``.

        Process:
        1. Look the player up by name
        2. Found: update the score by id, then re-read to confirm it stuck
        3. Not found: insert a new row
        4. On success, refresh every cached leaderboard

        Returns:
            The stored row, or None if any step failed (no retry)
        """
        try:
            existing = await self._call(self.store.find_by_name, name)

            if existing is not None:
                await self._call(self.store.update_score, existing.id, score)
                stored = await self._call(self.store.get_by_id, existing.id)

                if stored is None:
                    logger.error(
                        f"Ranking row {existing.id} vanished after update",
                        extra={"player_name": name, "score": score}
                    )
                    return None

                if stored.score != score:
                    logger.error(
                        f"Ranking update for {name!r} did not stick: stored {stored.score}, expected {score}",
                        extra={"player_name": name, "score": score}
                    )
                    return None
            else:
                stored = await self._call(self.store.insert, name, score)

        except RankingStoreError as e:
            logger.error(f"Ranking upsert for {name!r} failed: {e}", extra={"player_name": name, "score": score})
            return None

        logger.debug(f"Ranking upsert for {name!r} stored score {stored.score}")
        await self.refresh_leaderboards()
        return stored

    async def load_player(self, name: str) -> Optional[StoredPlayer]:
        """Stored ranking row for ``name``, or None if absent or unreadable."""
        try:
            return await self._call(self.store.find_by_name, name)
        except RankingStoreError as e:
            logger.warning(f"Could not load ranking row for {name!r}: {e}")
            return None

    async def refresh_top_n(self, n: int) -> List[StoredPlayer]:
        """
        Re-read the ``n`` best players and cache the result.

        Returns:
            Players by descending score; empty if the store failed
        """
        try:
            snapshot = await self._call(self.store.top_n, n)
        except RankingStoreError as e:
            logger.error(f"Leaderboard refresh (top {n}) failed: {e}")
            snapshot = []

        self._cache[n] = snapshot
        return snapshot

    async def refresh_leaderboards(self) -> Dict[int, List[StoredPlayer]]:
        """Refresh every cached leaderboard size concurrently."""
        results = await asyncio.gather(*(self.refresh_top_n(n) for n in self.sizes))
        self.last_refreshed_at = datetime.utcnow()
        return dict(zip(self.sizes, results))

    def cached(self, n: int) -> List[StoredPlayer]:
        """Last snapshot for size ``n`` (empty if never refreshed)."""
        return list(self._cache.get(n, []))

    @property
    def is_refreshing_periodically(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def start_periodic_refresh(self) -> None:
        """Start the background refresh loop on the running event loop (idempotent)."""
        if self.is_refreshing_periodically:
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())
        logger.info(f"Periodic leaderboard refresh started (every {self.refresh_interval}s)")

    async def stop_periodic_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Periodic leaderboard refresh stopped")

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh_leaderboards()
