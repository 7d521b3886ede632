import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quill.config import settings
from quill.database import engine
from quill.errors import BlogError, Unauthorized
from quill.middleware import RequestTimingMiddleware
from quill.routers import categories, posts, users

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting Quill API (%s)", settings.APP_ENV)
    yield
    await engine.dispose()


app = FastAPI(
    title="Quill Blog API",
    description="Posts, categories, comments and likes with per-category published counts",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers
@app.exception_handler(BlogError)
async def blog_error_handler(request: Request, exc: BlogError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"message": "Validation failed", "errors": errors})


# Routers
app.include_router(posts.router)
app.include_router(categories.router)
app.include_router(users.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
