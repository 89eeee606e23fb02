"""FastAPI application entrypoint for readme2ci service mode."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import load_config
from ..errors import ConfigError
from ..pipeline import AnalyzerPipeline


class AnalyzeRequest(BaseModel):
    content: str
    timeout: Optional[float] = Field(default=None, gt=0)


class HealthResponse(BaseModel):
    status: str


def _default_pipeline() -> AnalyzerPipeline:
    return AnalyzerPipeline(load_config())


def create_app(
    pipeline_factory: Callable[[], AnalyzerPipeline] = _default_pipeline,
) -> FastAPI:
    """Create the FastAPI application exposing README analysis."""

    app = FastAPI(title="readme2ci Service", version="1.0.0")

    async def get_pipeline() -> AnalyzerPipeline:
        # Fresh pipeline per request; invocations share no state.
        return pipeline_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze")
    async def analyze(
        payload: AnalyzeRequest,
        pipeline: AnalyzerPipeline = Depends(get_pipeline),
    ) -> JSONResponse:
        if payload.timeout is not None:
            pipeline = AnalyzerPipeline(replace(pipeline.config, timeout=payload.timeout))
        result = await pipeline.execute_async(payload.content)
        body: Dict[str, Any] = result.to_dict()
        return JSONResponse(status_code=200 if result.success else 422, content=body)

    @app.exception_handler(ConfigError)
    async def config_error_handler(
        _: Any, exc: ConfigError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app()
    uvicorn.run(app, host=host, port=port)
