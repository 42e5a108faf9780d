"""
RouteScribe FastAPI Application.

Static documentation service for Laravel controllers:
  POST /analyze  → analysis records per controller method
  POST /document → Scribe-style doc blocks per controller method
  POST /render   → doc block for one analysis record
  GET  /health   → {"status": "ok"}
"""

from __future__ import annotations

import logging

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routescribe.api.routes.analyze import router as analyze_router
from routescribe.api.routes.document import router as document_router
from routescribe.api.routes.health import router as health_router
from routescribe.config import settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("routescribe")

app = FastAPI(
    title="RouteScribe",
    description="Static analysis of Laravel controllers that writes Scribe-style API doc blocks",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(analyze_router)
app.include_router(document_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = await request.body()
    logger.error(f"Validation Error. Raw body: {body.decode('utf-8', errors='replace')[:500]} | Errors: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc), "body": body.decode("utf-8", errors="replace")[:100]},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("routescribe.main:app", host=settings.host, port=settings.port)
