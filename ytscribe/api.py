"""HTTP API for transcript acquisition."""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from ytscribe.config import Config, configure_logging
from ytscribe.errors import AcquisitionExhausted, InvalidInput, TranscriptError
from ytscribe.fetcher import Fetcher
from ytscribe.pipeline import TranscriptPipeline
from ytscribe.transcriber import Transcriber
from ytscribe.urls import parse_video_ref
from ytscribe.writers.json_writer import render, to_json

logger = logging.getLogger(__name__)

SOURCE_HEADER = "X-Transcript-Source"


class TranscriptRequest(BaseModel):
    url: Optional[str] = None
    videoId: Optional[str] = None
    format: str = "txt"
    lang: Optional[str] = None


def _output_format(value: Optional[str]) -> str:
    return "srt" if (value or "").lower() == "srt" else "txt"


def _output_kind(output_format: str) -> str:
    return "srt" if output_format == "srt" else "text"


def _download_headers(video_id: str, source: str, output_format: str) -> dict:
    return {
        SOURCE_HEADER: source,
        "Content-Disposition": f'attachment; filename="{video_id}.{output_format}"',
    }


def _status_for(error: TranscriptError) -> int:
    if isinstance(error, InvalidInput):
        return 400
    if isinstance(error, AcquisitionExhausted):
        return 502
    return 500


def _wants_debug(request: Request) -> bool:
    return request.query_params.get("debug", "").lower() == "1"


def _stack(error: Exception) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def _error_body(error: TranscriptError) -> dict:
    body = {"error": error.message}
    if error.hint:
        body["hint"] = error.hint
    if isinstance(error, AcquisitionExhausted):
        body["attempts"] = [attempt.to_dict() for attempt in error.attempts]
    return body


def create_app(pipeline: Optional[TranscriptPipeline] = None) -> FastAPI:
    """
    Build the application.

    Without an explicit pipeline, one shared httpx client, one OpenAI client
    and the default strategy line-up are created at startup and closed at
    shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        if pipeline is not None:
            app.state.pipeline = pipeline
            yield
            return

        async with httpx.AsyncClient(headers={"User-Agent": Config.YTDL_UA}) as client:
            transcriber = Transcriber()
            app.state.pipeline = TranscriptPipeline.from_config(Fetcher(client), transcriber=transcriber)
            logger.info(
                "Config: DEFAULT_LANG=%s | OPENAI_API_KEY=%s | strategies=%s",
                Config.DEFAULT_LANG or "(auto)",
                "set" if Config.OPENAI_API_KEY else "missing",
                ", ".join(app.state.pipeline.strategy_names),
            )
            try:
                yield
            finally:
                await transcriber.close()

    app = FastAPI(
        title="ytscribe API",
        description="YouTube transcripts from captions, with audio transcription as a fallback",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=[SOURCE_HEADER, "Content-Disposition"],
    )

    @app.exception_handler(TranscriptError)
    async def transcript_error_handler(request: Request, exc: TranscriptError):
        status = _status_for(exc)
        if status >= 500:
            logger.error("Transcript request failed: %s", exc.message)
        body = _error_body(exc)
        if _wants_debug(request):
            body["stack"] = _stack(exc)
        return JSONResponse(status_code=status, content=body)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error handling %s", request.url.path)
        body = {"error": str(exc) or "Transcription failed"}
        if _wants_debug(request):
            body["stack"] = _stack(exc)
        return JSONResponse(status_code=500, content=body)

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/transcript")
    async def get_transcript(
        request: Request,
        url: Optional[str] = Query(None, description="YouTube watch, youtu.be or shorts URL"),
        format: str = Query("txt", description="txt or srt"),
        lang: Optional[str] = Query(None, description="Language hint, e.g. en"),
        wrap: Optional[str] = Query(None, description="json to wrap the transcript in a JSON object"),
        debug: Optional[str] = Query(None, description="1 to include a stack trace in error bodies"),
    ):
        """Transcript as a text/SRT attachment, or wrapped in JSON with wrap=json."""
        if not url:
            return JSONResponse(status_code=400, content={"error": "Provide ?url="})

        video = parse_video_ref(url)
        output_format = _output_format(format)
        result = await request.app.state.pipeline.run(
            video, language=lang or Config.DEFAULT_LANG or None, output_kind=_output_kind(output_format)
        )
        headers = _download_headers(video.id, result.source, output_format)

        if (wrap or "").lower() == "json":
            return JSONResponse(content=to_json(result, output_format), headers=headers)
        return PlainTextResponse(render(result, output_format), headers=headers)

    @app.post("/transcript")
    async def post_transcript(body: TranscriptRequest, request: Request):
        """JSON variant accepting either a URL or a bare video id."""
        target = body.url or (f"https://www.youtube.com/watch?v={body.videoId}" if body.videoId else None)
        if not target:
            return JSONResponse(status_code=400, content={"error": "Missing required parameter: url or videoId"})

        video = parse_video_ref(target)
        output_format = _output_format(body.format)
        language = body.lang or Config.DEFAULT_LANG or None
        result = await request.app.state.pipeline.run(
            video, language=language, output_kind=_output_kind(output_format)
        )
        return JSONResponse(
            content={
                "success": True,
                "data": {
                    "transcript": render(result, output_format),
                    "format": output_format,
                    "language": result.language or language,
                    "segments": len(result.segments),
                    "source": result.source,
                    "videoId": video.id,
                },
            },
            headers=_download_headers(video.id, result.source, output_format),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("ytscribe.api:app", host="0.0.0.0", port=Config.PORT)
