"""Portfolio Service - FastAPI server for the portfolio site and its contact form."""

import os
import logging
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.contact.dependencies import get_contact_store
from src.shared.contact.routes import router as contact_router
from src.shared.contact.schemas import HealthResponse, utc_timestamp

# Load environment variables from .env file (for local development)
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # python-dotenv not installed, skip (fine for production)


def _allowed_origins() -> list:
    origins = os.environ.get("CORS_ORIGINS", "*")
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


ALLOWED_ORIGINS = _allowed_origins()
STATIC_DIR = Path(os.environ.get("STATIC_DIR", "static"))

app = FastAPI(
    title="Portfolio Service",
    description="Personal portfolio site with contact form submissions",
    version="0.1.0"
)


@app.on_event("startup")
async def startup_event():
    try:
        store = get_contact_store()
        logging.info(f"Contact storage initialized on startup ({store.backend_name})")
    except Exception as e:
        # Log error but don't crash the app; the store is rebuilt on first request
        logging.error(f"Contact storage initialization error on startup: {str(e)}")


# Include contact routes
app.include_router(contact_router)

# CORS configuration - must be added before exception handlers
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for responses produced outside the CORS middleware."""
    headers = {}
    origin = request.headers.get("origin")
    if origin and ("*" in ALLOWED_ORIGINS or origin in ALLOWED_ORIGINS):
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Methods"] = "*"
        headers["Access-Control-Allow-Headers"] = "*"
    return headers


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {success, message} bodies."""
    # Handle both string and dict detail formats
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"success": False, "message": str(exc.detail)}

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies (not a JSON object, non-string fields) are client errors."""
    logging.info(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request body"}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Ensure unexpected failures never leak a raw exception to the caller."""
    logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
        headers=_cors_headers(request)
    )


@app.get("/")
async def root():
    """Serve the landing page when the site is deployed alongside the API."""
    index_path = STATIC_DIR / "index.html"
    if index_path.is_file():
        return FileResponse(path=str(index_path), media_type="text/html")
    return {"message": "Portfolio Service API is running", "status": "ok"}


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(success=True, message="Server is running", timestamp=utc_timestamp())


# Static site assets; mounted last so API routes take precedence
if STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=str(STATIC_DIR)), name="static")


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    port = int(os.environ.get("PORT", "3001"))
    logging.info(f"Portfolio server running on http://localhost:{port}")
    logging.info(f"Contact API available at http://localhost:{port}/contact")
    uvicorn.run(app, host="0.0.0.0", port=port)
