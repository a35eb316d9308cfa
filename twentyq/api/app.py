"""
FastAPI Application - HTTP surface of the twentyq service.

Endpoints:
    GET    /                                        Home page
    GET    /health                                  Health check
    POST   /game/create                             Create a game, become its oracle
    GET    /game/{id}/                              Game page
    GET    /game/{id}/state                         Game state (JSON)
    POST   /game/{id}/submitResponse                Ask (guesser) or answer (oracle)
    GET    /game/{id}/responsesSourceSSE            Live turn updates (SSE)
    GET    /game/{id}/oracleVerdictCorrect          Oracle ends game: guessed
    GET    /game/{id}/oracleVerdictIncorrect        Oracle ends game: not guessed

Run with: uvicorn twentyq.api.app:create_app --factory

Oracle privilege is a signed token in a cookie named after the session
and scoped to its path. Every game route resolves it to a Role once and
passes that Role into the session explicitly.
"""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from .. import __version__
from ..auth import Role
from ..engine_core import Verdict
from ..exceptions import ErrorCode, SessionNotFoundError, TwentyQError
from ..observability.logging import get_logger, setup_logging
from ..session import ConnectionLifetime, GameSession, SessionRegistry
from ..settings import Settings, get_settings
from .middleware import NoCacheMiddleware, RequestLoggingMiddleware
from .schemas import ErrorResponse, GameStateResponse, HealthResponse

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    registry: SessionRegistry | None = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Optional Settings (read from the environment if not provided)
        registry: Optional SessionRegistry (built from settings if not provided)

    Returns:
        FastAPI application instance
    """
    if settings is None:
        settings = get_settings()
    setup_logging(
        level=settings.effective_log_level,
        format=settings.effective_log_format,
        log_file=settings.log_file,
    )

    # SessionRegistry defines __len__, so an empty one is falsy.
    if registry is None:
        registry = SessionRegistry(
            session_ttl=settings.session_ttl_seconds,
            token_ttl=settings.token_ttl_seconds,
            id_length=settings.session_id_length,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app_started", version=__version__, debug=settings.debug)
        yield
        await registry.close()
        logger.info("app_stopped")

    app = FastAPI(
        title="Twenty Questions",
        description="Live twenty-questions games with one oracle and many guessers.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings
    app.state.registry = registry

    app.add_middleware(NoCacheMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    # =========================================================================
    # Error handling
    # =========================================================================

    @app.exception_handler(TwentyQError)
    async def twentyq_error_handler(request: Request, exc: TwentyQError) -> JSONResponse:
        """Turn a request-terminating error into an ErrorResponse."""
        logger.info(
            "request_failed",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.message,
                error_code=exc.error_code,
                session_id=request.path_params.get("session_id"),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log and answer 500 for anything unexpected; the process keeps serving."""
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="An unexpected error occurred",
                error_code=ErrorCode.INTERNAL_ERROR,
            ).model_dump(mode="json"),
        )

    # =========================================================================
    # Dependencies
    # =========================================================================

    def get_game(session_id: str) -> GameSession:
        session = registry.lookup(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_role(
        request: Request,
        session: Annotated[GameSession, Depends(get_game)],
    ) -> Role:
        return session.authorize(request.cookies.get(session.session_id))

    GameDep = Annotated[GameSession, Depends(get_game)]
    RoleDep = Annotated[Role, Depends(get_role)]

    # =========================================================================
    # Home
    # =========================================================================

    @app.get("/", response_class=HTMLResponse, tags=["Pages"], summary="Home page")
    async def index() -> HTMLResponse:
        return HTMLResponse(registry.renderer.render_index())

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(version=__version__, sessions=len(registry))

    # =========================================================================
    # Game lifecycle
    # =========================================================================

    @app.post(
        "/game/create",
        status_code=303,
        tags=["Games"],
        summary="Create a game and become its oracle",
    )
    async def create_game() -> RedirectResponse:
        """
        Create a new game.

        The caller receives the oracle cookie and is redirected to the
        game page; whoever else opens that link is a guesser.
        """
        session = await registry.create()
        response = RedirectResponse(url=f"/game/{session.session_id}/", status_code=303)
        response.set_cookie(
            key=session.session_id,
            value=session.capability.token,
            path=f"/game/{session.session_id}",
            expires=session.capability.expires_at,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
        )
        return response

    @app.get(
        "/game/{session_id}/",
        response_class=HTMLResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Game page",
    )
    async def game_page(session: GameDep, role: RoleDep) -> HTMLResponse:
        """Render the page shell; turns arrive over the event stream."""
        return HTMLResponse(session.render_page(role))

    @app.get(
        "/game/{session_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Current game state",
    )
    async def game_state(session: GameDep, role: RoleDep) -> GameStateResponse:
        return GameStateResponse.from_snapshot(
            session.session_id,
            session.snapshot(),
            is_oracle=role.is_oracle,
            expires_at=session.expires_at,
        )

    @app.post(
        "/game/{session_id}/submitResponse",
        responses={
            400: {"model": ErrorResponse, "description": "Out of turn, empty, or game over"},
            404: {"model": ErrorResponse},
        },
        tags=["Games"],
        summary="Ask a question or answer one",
    )
    async def submit_response(
        session: GameDep,
        role: RoleDep,
        response: Annotated[str, Form(description="Question (guesser) or answer (oracle)")] = "",
    ) -> dict:
        """
        Guessers submit questions, the oracle submits answers.

        On success every live subscriber receives the updated turn list.
        """
        snapshot = await session.submit_response(role, response)
        return {"status": snapshot.state.value, "turns": len(snapshot.turns)}

    @app.get(
        "/game/{session_id}/responsesSourceSSE",
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Live turn updates",
    )
    async def responses_source(session: GameDep) -> EventSourceResponse:
        """
        Server-sent events carrying the rendered turn list.

        The first event is the current state; the stream stays open until
        the client disconnects or the session expires.
        """
        lifetime = ConnectionLifetime()
        subscriber = await session.subscribe(lifetime)

        async def events():
            try:
                async for payload in subscriber.stream():
                    yield {"data": payload}
            finally:
                lifetime.end()

        async def release():
            # Runs once the response is over, even if the stream never started.
            lifetime.end()
            logger.debug(
                "subscriber_disconnected",
                session_id=session.session_id,
                subscriber_id=subscriber.subscriber_id,
            )

        return EventSourceResponse(
            events(),
            ping=settings.sse_ping_seconds,
            background=BackgroundTask(release),
        )

    async def _verdict(session: GameSession, role: Role, verdict: Verdict) -> dict:
        snapshot = await session.resolve(role, verdict)
        return {"status": snapshot.state.value, "verdict": verdict.value}

    @app.get(
        "/game/{session_id}/oracleVerdictCorrect",
        responses={
            400: {"model": ErrorResponse, "description": "Game already over"},
            401: {"model": ErrorResponse, "description": "Not the oracle"},
            404: {"model": ErrorResponse},
        },
        tags=["Games"],
        summary="End the game: guessed correctly",
    )
    async def oracle_verdict_correct(session: GameDep, role: RoleDep) -> dict:
        return await _verdict(session, role, Verdict.CORRECT)

    @app.get(
        "/game/{session_id}/oracleVerdictIncorrect",
        responses={
            400: {"model": ErrorResponse, "description": "Game already over"},
            401: {"model": ErrorResponse, "description": "Not the oracle"},
            404: {"model": ErrorResponse},
        },
        tags=["Games"],
        summary="End the game: not guessed",
    )
    async def oracle_verdict_incorrect(session: GameDep, role: RoleDep) -> dict:
        return await _verdict(session, role, Verdict.INCORRECT)

    return app
