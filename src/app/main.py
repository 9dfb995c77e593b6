# src/app/main.py
from __future__ import annotations
import logging
import sys
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from src.app.config import settings
from src.app.deps import get_storage
from src.app.domain.errors import StorageError
from src.app.routers.recipes import router as recipes_router

# Logging simples no stdout (bom para dev e containers)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Recipe Box API", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(recipes_router)


@app.on_event("startup")
async def startup() -> None:
    # Backend mal configurado deve falhar aqui, não no primeiro request
    resolve_storage = app.dependency_overrides.get(get_storage, get_storage)
    storage = resolve_storage()
    logger.info("Recipe storage ready at %s", storage.location)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("%s %s - storage failure: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Error accessing recipe storage."})


@app.get("/health")
def health():
    return {"ok": True}


# O front-end estático fica por último para não sombrear /api e /health
if Path(settings.STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.app.main:app", host=settings.HOST, port=settings.PORT)
