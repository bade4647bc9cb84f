"""Main FastAPI application for the Algebra Word Puzzle."""
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.routers import session, leaderboard
from app.db.init_db import init_db
from app.db.database import SessionLocal
from app.logging_config import setup_logging, get_logger
from app.config import settings
from app.rate_limit import limiter
from app.services.ranking_store import SqlRankingStore, StoreUnavailableError
from app.services.ranking_sync import RankingSynchronizer
from app.services.session_manager import SessionManager
from app.services.snapshot_store import SqlSnapshotStore

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)

def build_session_manager() -> SessionManager:
    """Wire the production session manager from settings."""
    synchronizer = RankingSynchronizer(
        SqlRankingStore(SessionLocal),
        refresh_interval=settings.LEADERBOARD_REFRESH_SECONDS
    )
    return SessionManager(
        synchronizer,
        SqlSnapshotStore(SessionLocal),
        resume_on_return=settings.RESUME_ON_RETURN,
        word_complete_delay=settings.WORD_COMPLETE_DELAY_SECONDS,
        idle_timeout=settings.SESSION_IDLE_SECONDS
    )

async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    """No gameplay until the ranking store answers; the client retries the request."""
    return JSONResponse(
        status_code=503,
        content={
            "detail": f"Ranking store unavailable: {exc}",
            "retry": True
        }
    )

def create_app(session_manager: SessionManager = None) -> FastAPI:
    """
    Build the application.

    Args:
        session_manager: Pre-built manager (tests). When omitted, the lifespan
            initializes the configured database and builds one from settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, wire the session manager and run the first store check."""
        logger.info("Application startup initiated")
        manager = session_manager
        if manager is None:
            try:
                init_db()
                logger.info("Database initialization completed successfully")
            except Exception as e:
                logger.error(f"Database initialization failed: {e}", exc_info=True)
                raise
            manager = build_session_manager()

        app.state.session_manager = manager
        try:
            await manager.ensure_store_ready()
        except StoreUnavailableError:
            logger.warning("Ranking store not reachable at startup; requests will retry")

        yield

        await manager.shutdown()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Algebra Word Puzzle API",
        description="""
        Reveal secret words one letter at a time by solving linear equations.

        ## Game Flow

        1. **Name**: POST `/api/session/name` to start playing
        2. **Answer**: POST `/api/session/answer` with the value of x
        3. **Progress**: every solved equation reveals a letter; solving all
           Easy words unlocks Medium (POST `/api/session/difficulty`)
        4. **Leaderboard**: GET `/api/leaderboard?size=3` or `size=12`

        ## Scoring

        - Correct answer: +100
        - Wrong or non-numeric answer: -10 (never below 0)
        - Scores are synced to the shared ranking after every answer
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_tags=[
            {
                "name": "session",
                "description": "Puzzle session view and commands"
            },
            {
                "name": "leaderboard",
                "description": "Cached top-3 and top-12 rankings"
            },
            {
                "name": "health",
                "description": "Service health and readiness checks"
            }
        ]
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)

    app.include_router(session.router)
    app.include_router(leaderboard.router)

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """Health check that counts ranking rows.

        Returns:
            200 OK: Service is healthy and the ranking store answers
            503 Service Unavailable: The ranking store check failed

        Example Response (Healthy):
            {
                "status": "healthy",
                "database": "connected",
                "players": 42,
                "timestamp": "2026-10-19T10:30:00.000000Z",
                "environment": "production"
            }
        """
        timestamp = datetime.utcnow().isoformat() + "Z"
        manager: SessionManager = request.app.state.session_manager

        try:
            players = await manager.synchronizer.check_connectivity()
            logger.debug("Health check passed")
            return {
                "status": "healthy",
                "database": "connected",
                "players": players,
                "timestamp": timestamp,
                "environment": settings.ENVIRONMENT
            }
        except StoreUnavailableError as e:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "database": "disconnected",
                    "error": str(e),
                    "timestamp": timestamp
                }
            )

    return app

app = create_app()
