import logging
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Config
from .errors import FrameExportError
from .exporter import FrameExporter

logger = logging.getLogger(__name__)

load_dotenv()

ALLOWED_HEADERS = [
    "authorization", "x-client-info", "apikey", "content-type",
    "x-supabase-client-platform", "x-supabase-client-platform-version",
    "x-supabase-client-runtime", "x-supabase-client-runtime-version",
]


def get_config() -> Config:
    return Config()


def get_exporter_factory() -> Callable[[Config], FrameExporter]:
    return FrameExporter.from_config


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({'error': message}, status_code=status_code)


def create_app() -> FastAPI:
    app = FastAPI(title="Figma Frame Exporter")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=ALLOWED_HEADERS,
    )

    @app.exception_handler(FrameExportError)
    async def frame_export_error_handler(request: Request, exc: FrameExportError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, "figmaUrl is required")

    @app.get("/health")
    def health(config: Config = Depends(get_config)) -> Dict[str, Any]:
        return {'status': 'ok', 'has_figma_access': config.has_figma_access}

    @app.post("/fetch-figma-frames")
    def fetch_figma_frames(payload: Optional[Dict[str, Any]] = Body(default=None),
                           config: Config = Depends(get_config),
                           exporter_factory: Callable[[Config], FrameExporter] = Depends(get_exporter_factory)):
        payload = payload or {}
        figma_url = payload.get('figmaUrl') or payload.get('locator')
        if not figma_url or not isinstance(figma_url, str):
            return _error(400, "figmaUrl is required")

        exporter = None
        try:
            config.require_figma_token()
            exporter = exporter_factory(config)
            result = exporter.export(figma_url)
        except FrameExportError:
            raise
        except Exception as e:
            logger.exception("fetch-figma-frames error")
            return _error(500, str(e) or "Unknown error")
        finally:
            if exporter is not None:
                exporter.close()

        return result.to_response()

    return app


app = create_app()
