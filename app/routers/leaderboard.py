"""Leaderboard endpoints backed by the synchronizer's cache."""
from fastapi import APIRouter, Depends, HTTPException, Query
from app.constants import LEADERBOARD_TOP_SIZE
from app.routers.session import get_session_manager
from app.services.session_manager import SessionManager

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


def _serialize(manager: SessionManager, size: int) -> dict:
    synchronizer = manager.synchronizer
    return {
        "size": size,
        "players": [player.to_dict() for player in synchronizer.cached(size)],
        "last_refreshed_at": (
            synchronizer.last_refreshed_at.isoformat() + "Z"
            if synchronizer.last_refreshed_at else None
        )
    }


@router.get("")
async def get_leaderboard(
    size: int = Query(LEADERBOARD_TOP_SIZE, description="3 (inline) or 12 (expanded)"),
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Cached leaderboard snapshot.

    An empty player list means no rankings are available, either because
    nobody has played yet or because the last refresh failed.
    """
    if size not in manager.synchronizer.sizes:
        raise HTTPException(status_code=422, detail=f"size must be one of {list(manager.synchronizer.sizes)}")

    await manager.ensure_store_ready()
    return _serialize(manager, size)


@router.post("/refresh")
async def refresh_leaderboard(manager: SessionManager = Depends(get_session_manager)):
    """Re-read every cached leaderboard size from the ranking store."""
    await manager.ensure_store_ready()
    await manager.synchronizer.refresh_leaderboards()
    return {
        "leaderboards": [_serialize(manager, size) for size in manager.synchronizer.sizes]
    }
