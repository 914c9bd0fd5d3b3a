import sys

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from coinmind.api.routes import router
from coinmind.config import get_settings
from coinmind.exceptions import (
    CoinMindError,
    ConfigurationError,
    ImportFailedError,
    InvalidFormatError,
)

settings = get_settings()

# Configure loguru
logger.remove()
logger.add(sys.stderr, level=settings.log_level, format="{time:HH:mm:ss} | {level:<7} | {message}")

app = FastAPI(title="CoinMind", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("{} {}", request.method, request.url.path)
    response: Response = await call_next(request)
    logger.info("→ {}", response.status_code)
    return response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    logger.warning("Rejected request body: {}", exc.errors())
    if request.url.path == "/chat":
        fields = {part for error in exc.errors() for part in error.get("loc", ())}
        if fields & {"fileInfo", "previousFile"}:
            return _error(400, "Invalid file metadata")
        return _error(400, "Message is required")
    return _error(400, "Invalid request")


@app.exception_handler(ConfigurationError)
async def configuration_error(request: Request, exc: ConfigurationError):
    logger.error("Configuration error: {}", exc.message)
    return _error(500, exc.message)


@app.exception_handler(InvalidFormatError)
async def invalid_format(request: Request, exc: InvalidFormatError):
    logger.error("Malformed import request: {}", exc.message)
    return _error(400, exc.message)


@app.exception_handler(ImportFailedError)
async def import_failed(request: Request, exc: ImportFailedError):
    logger.error("Import failed: {}", exc.message)
    return _error(500, exc.message)


@app.exception_handler(CoinMindError)
async def coinmind_error(request: Request, exc: CoinMindError):
    logger.error("Unhandled {}: {}", type(exc).__name__, exc.message)
    return _error(500, "Failed to process chat message. Please try again.")


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Chat API error: {}", exc)
    return _error(500, "Failed to process chat message. Please try again.")


app.include_router(router)


@app.on_event("startup")
async def startup():
    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY not set, /chat will answer 500 until it is configured")
    logger.info("Ledger at {}, default currency {}", settings.db_path, settings.default_currency)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
