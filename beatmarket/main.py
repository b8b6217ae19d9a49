# main.py
import os
import logging
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv

from beatmarket import __version__
from beatmarket.db.connection import create_mongodb_client, get_database, close_connection
from beatmarket.db.init_collections import init_mongodb
from beatmarket.http_api.router import router as api_router
from beatmarket.http_api.audit_log import AuditLogMiddleware
from beatmarket.ledger import Ledger
from beatmarket.storage import create_media_store
from beatmarket.storage.local_storage import LocalMediaStore, URL_PREFIX

logger = logging.getLogger(__name__)


def create_app(database=None, media_store=None) -> FastAPI:
    """
    Build the API with its storage and media collaborators.

    Args:
        database: pymongo Database; connects with MONGO_URL / MONGO_DATABASE when omitted
        media_store: S3MediaStore or LocalMediaStore; chosen from the environment when omitted
    """
    client = None
    if database is None:
        client = create_mongodb_client()
        database = get_database(client)
    if media_store is None:
        media_store = create_media_store()

    app = FastAPI(
        title="Beat Market API",
        version=__version__
    )

    app.state.ledger = Ledger(database, media_store)

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AuditLogMiddleware)

    app.include_router(api_router)

    if isinstance(media_store, LocalMediaStore):
        app.mount(URL_PREFIX, StaticFiles(directory=media_store.root_dir), name="uploads")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        reason = errors[0].get("msg", "malformed body") if errors else "malformed body"
        return JSONResponse(status_code=400, content={"detail": f"Invalid request: {reason}"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.on_event("startup")
    def startup_event():
        try:
            init_mongodb(database)
        except Exception as e:
            logger.error(f"❌ Database initialization failed: {e}")
            logger.warning("⚠️  Server starting without database initialization")
        logger.info("🚀 Server startup complete!")

    @app.on_event("shutdown")
    def shutdown_event():
        close_connection(client)

    return app


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )
    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", 4000)))
