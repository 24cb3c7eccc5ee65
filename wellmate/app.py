import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wellmate.companion import Companion
from wellmate.config import Settings, load_settings
from wellmate.llm import LLM, ChatLLM, ConfigError, EchoLLM, LLMError
from wellmate.orchestrator import Orchestrator
from wellmate.profiles import MissingProfileError, ProfileSource
from wellmate.relationship import RelationshipStateMachine
from wellmate.routes import router
from wellmate.storage import Storage
from wellmate.templates import TemplateResolver

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)


def create_app(
    data_dir: Path | None = None,
    settings: Settings | None = None,
    llm: LLM | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    storage = Storage(data_dir or settings.data_dir)
    profiles = ProfileSource(settings.profiles_dir)
    llm = llm or _build_llm(settings)
    orchestrator = Orchestrator(
        llm,
        profiles,
        TemplateResolver(profiles),
        dialogue_timeout=settings.dialogue_timeout,
        chart_timeout=settings.chart_timeout,
    )

    app = FastAPI(title="WellMate Companion")
    app.state.settings = settings
    app.state.llm = llm
    app.state.profiles = profiles
    app.state.companion = Companion(
        storage, orchestrator, RelationshipStateMachine(storage, profiles)
    )
    app.include_router(router, prefix="/api")
    _add_error_handlers(app)
    return app


def _build_llm(settings: Settings) -> LLM:
    if settings.llm_echo:
        logger.warning("LLM_ECHO is set, replies echo the prompt instead of calling a model")
        return EchoLLM()
    return ChatLLM(
        settings.llm_base_url,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        timeout=settings.dialogue_timeout,
    )


def _add_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MissingProfileError)
    async def missing_profile(request: Request, exc: MissingProfileError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error(request: Request, exc: ConfigError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(LLMError)
    async def llm_error(request: Request, exc: LLMError):
        return JSONResponse(status_code=502, content={"detail": str(exc)})
