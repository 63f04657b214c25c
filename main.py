"""
sealdrop - Main Entry Point

A FastAPI service for sharing encrypted markdown documents through a link.
The server stores ciphertext only; content-addressed uploads are encrypted
client-side and deduplicated through blinded tags.
"""

import hmac
import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import Config, VERSION, config as default_config
from errors import SealdropError, ValidationError
from crypto import DedupeTagger
from documents import CreateOptions, DocumentService, DocumentStore
from documents.sql_store import SqlDocumentStore

__version__ = VERSION

logger = logging.getLogger(__name__)


def build_service(cfg: Config, store: Optional[DocumentStore] = None) -> DocumentService:
    """Validate the configuration and wire the document service."""
    cfg.validate()
    tagger = DedupeTagger(cfg.pepper_bytes, allow_unpeppered=cfg.ALLOW_UNPEPPERED_DEDUPE)
    return DocumentService(
        store=store if store is not None else SqlDocumentStore(cfg.database_url),
        tagger=tagger,
        kdf_params=cfg.kdf_params,
        expiry=cfg.expiry,
        max_content_bytes=cfg.MAX_CONTENT_BYTES,
    )


async def _read_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise ValidationError("invalid_format", "Invalid request body.")
    return body


def create_app(
    cfg: Optional[Config] = None,
    store: Optional[DocumentStore] = None,
    service: Optional[DocumentService] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        cfg: Configuration (defaults to the environment-derived one)
        store: Store to use instead of the configured SQL database
        service: Fully built service; skips startup wiring
    """
    cfg = cfg or default_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        if getattr(app.state, "service", None) is None:
            app.state.service = build_service(cfg, store)
        logger.info("sealdrop %s started", __version__)

        yield

        await app.state.service.drain()
        logger.info("sealdrop stopped")

    app = FastAPI(
        title="sealdrop",
        description="Encrypted document sharing",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.service = service

    @app.exception_handler(SealdropError)
    async def sealdrop_error_handler(request: Request, exc: SealdropError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error.", "code": "server_error"},
        )

    # ========================================================================
    # Documents API
    # ========================================================================

    @app.post("/api/documents", status_code=201)
    async def create_document(request: Request):
        """
        Create a document.

        A body with ``markdown`` is encrypted server-side; otherwise the body
        must be a client-encrypted payload.
        """
        body = await _read_json(request)
        service: DocumentService = request.app.state.service

        if "markdown" in body:
            content_addressed = body.get("contentAddressed", False)
            if not isinstance(content_addressed, bool):
                raise ValidationError("invalid_format", "contentAddressed must be a boolean.")
            options = CreateOptions(
                password=body.get("password"),
                content_addressed=content_addressed,
            )
            result = await service.create_from_plaintext(body["markdown"], options)
            response = {
                "documentId": result.id,
                "readUrl": f"/r/{result.id}",
                "password": result.password,
            }
        else:
            result = await service.create_from_encrypted_payload(body)
            response = {
                "documentId": result.id,
                "readUrl": f"/r/{result.id}",
            }

        if result.deduplicated:
            response["deduplicated"] = True
        return response

    @app.get("/api/documents/{document_id}")
    async def get_document(document_id: str, request: Request):
        """Return the encrypted blob for client-side decryption."""
        service: DocumentService = request.app.state.service
        doc = await service.read_ciphertext(document_id)
        if doc is None:
            return JSONResponse(
                status_code=404,
                content={"error": "Document not found.", "code": "not_found"},
            )
        return doc.to_public_dict()

    @app.post("/api/documents/{document_id}/decrypt")
    async def decrypt_document(document_id: str, request: Request):
        """Decrypt server-side with a password."""
        body = await _read_json(request)
        service: DocumentService = request.app.state.service
        markdown = await service.decrypt(document_id, body.get("password"))
        return {"markdown": markdown}

    # ========================================================================
    # Maintenance API
    # ========================================================================

    @app.get("/api/cron/cleanup")
    async def cleanup(request: Request):
        """Purge expired documents. Requires the cron bearer secret."""
        secret = request.app.state.config.CRON_SECRET
        auth_header = request.headers.get("authorization", "")
        if not secret or not hmac.compare_digest(auth_header.encode(), f"Bearer {secret}".encode()):
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "code": "unauthorized"},
            )

        deleted = await request.app.state.service.purge()
        return {"deleted": deleted}

    @app.get("/api/version")
    async def get_version():
        """Get current application version."""
        return {
            "version": __version__,
            "app_name": "sealdrop",
        }

    return app


app = create_app()


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=default_config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    uvicorn.run(
        app,
        host=default_config.HOST,
        port=default_config.PORT,
        log_level=default_config.LOG_LEVEL.lower(),
    )
