"""
main.py

This is the FastAPI entrypoint for the deal recorder service. It serves the
upload page, a liveness check, the `/upload` endpoint that runs the
transcription -> Drive -> amoCRM pipeline for one recording, and the two
`/auth-google` helpers used to mint a Google refresh token.

"""

from __future__ import annotations

import html
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse

from config.settings import AUTH_MODES, Settings
from domain.errors import ClientInputError, OAuthExchangeError, PipelineError
from domain.models import ErrorResponse
from logger import get_logger
from services.crm_client import AmoCrmClient
from services.drive_client import DriveClient
from services.google_oauth import GoogleOAuthHelper
from services.pipeline import DealUploadPipeline
from services.transcription_client import TranscriptionClient

logger = get_logger("Main")

STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

STARTUP_CHECKS = (
    "OPENAI_API_KEY",
    "GOOGLE_SERVICE_ACCOUNT_JSON",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REFRESH_TOKEN",
    "GOOGLE_DRIVE_AUDIO_FOLDER_ID",
    "GOOGLE_DRIVE_TEXT_FOLDER_ID",
    "AMOCRM_DOMAIN",
    "AMOCRM_ACCESS_TOKEN",
)


def build_pipeline(settings: Settings) -> DealUploadPipeline:
    stt_client = TranscriptionClient(
        api_url=settings.TRANSCRIBE_URL,
        api_key=settings.OPENAI_API_KEY,
        model=settings.WHISPER_MODEL,
        language=settings.TRANSCRIBE_LANGUAGE,
        timeout_sec=settings.HTTP_TIMEOUT_SEC,
    )
    drive_client = DriveClient(settings.drive_auth(), timeout_sec=settings.HTTP_TIMEOUT_SEC)
    crm_client = AmoCrmClient(
        domain=settings.AMOCRM_DOMAIN,
        access_token=settings.AMOCRM_ACCESS_TOKEN,
        timeout_sec=settings.HTTP_TIMEOUT_SEC,
    )
    return DealUploadPipeline(settings, stt_client, drive_client, crm_client)


def build_oauth_helper(settings: Settings) -> GoogleOAuthHelper:
    return GoogleOAuthHelper(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=settings.GOOGLE_REDIRECT_URI,
        timeout_sec=settings.HTTP_TIMEOUT_SEC,
    )


def log_settings_report(settings: Settings) -> None:
    logger.info("Google Drive auth mode: %s", settings.auth_mode)
    if settings.GOOGLE_AUTH_MODE and settings.GOOGLE_AUTH_MODE.strip().lower() not in AUTH_MODES:
        logger.warning("GOOGLE_AUTH_MODE=%r is not one of %s; detected %s",
                       settings.GOOGLE_AUTH_MODE, AUTH_MODES, settings.auth_mode)
    missing = set(settings.missing())
    for name in STARTUP_CHECKS:
        if name in missing:
            logger.warning("  %s: MISSING", name)
        elif getattr(settings, name):
            logger.info("  %s: set", name)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def create_app(settings: Optional[Settings] = None,
               pipeline: Optional[DealUploadPipeline] = None,
               oauth: Optional[GoogleOAuthHelper] = None) -> FastAPI:
    settings = settings or Settings()
    pipeline = pipeline or build_pipeline(settings)
    oauth = oauth or build_oauth_helper(settings)

    app = FastAPI(title="Deal Recorder")
    app.state.settings = settings
    app.state.pipeline = pipeline

    @app.on_event("startup")
    async def _startup() -> None:
        get_logger("startup").info("Server running on port %s", settings.PORT)
        log_settings_report(settings)

    @app.get("/")
    async def index():
        return FileResponse(os.path.join(STATIC_DIR, "index.html"), media_type="text/html")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/upload")
    async def upload(dealId: Optional[str] = Form(None), audio: Optional[UploadFile] = File(None)):
        try:
            if not dealId or audio is None:
                raise ClientInputError("dealId and audio are required")
            result = await pipeline.handle(dealId, audio.file, audio.content_type)
        except PipelineError as e:
            return _error(e.status_code, e.message)
        except Exception as e:
            logger.error("[%s] Unexpected error: %r", dealId, e, exc_info=True)
            return _error(500, str(e))
        finally:
            if audio is not None:
                await audio.close()
        return result.model_dump(by_alias=True)

    @app.get("/auth-google")
    async def auth_google():
        return RedirectResponse(oauth.authorization_url(), status_code=302)

    @app.get("/auth-google/callback")
    async def auth_google_callback(code: Optional[str] = None):
        if not code:
            return PlainTextResponse("Missing code", status_code=400)
        try:
            tokens = await oauth.exchange_code(code)
        except OAuthExchangeError as e:
            return HTMLResponse(f"<h2>Token exchange failed</h2><pre>{html.escape(e.message)}</pre>", status_code=500)

        refresh_token = tokens.get("refresh_token") or "(no new token, use existing)"
        access_token = tokens.get("access_token", "")
        return HTMLResponse(
            "<h2>New refresh token received!</h2>"
            "<p>Copy this value and set it as <b>GOOGLE_REFRESH_TOKEN</b>:</p>"
            '<pre style="background:#f0f0f0;padding:12px;word-break:break-all">'
            f"{html.escape(refresh_token)}</pre>"
            f"<p>Access token (for reference): <code>{html.escape(access_token)}</code></p>"
        )

    return app


settings = Settings()
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
