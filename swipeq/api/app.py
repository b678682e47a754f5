"""FastAPI server for SwipeQ meal-swipe tracking"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load environment variables from .env before swipeq.config reads them
load_dotenv()

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from swipeq.api.routes.health import router as health_router  # noqa: E402
from swipeq.api.routes.swipes import router as swipes_router  # noqa: E402
from swipeq.config import APP_VERSION  # noqa: E402
from swipeq.observability.logging import get_logger  # noqa: E402
from swipeq.observability.telemetry import counter  # noqa: E402

logger = get_logger(__name__)

app = FastAPI(title="SwipeQ API", version=APP_VERSION)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return field names only, not validation internals."""
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


# The dashboard runs on a separate dev server
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("SWIPEQ_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(health_router)
app.include_router(swipes_router)


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "swipeq.api.app:app",
        host=os.getenv("SWIPEQ_HOST", "127.0.0.1"),
        port=int(os.getenv("SWIPEQ_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
