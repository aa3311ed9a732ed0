"""FastAPI entrypoint for the proctored exam room server."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from examroom.config import settings
from examroom.database import create_db_and_tables
from examroom.errors import (
    ConflictError,
    ExamError,
    ExamUnavailableError,
    TimingError,
    ValidationError,
)
from examroom.routers import admin as admin_router_module
from examroom.routers import rooms as rooms_router_module

logger = logging.getLogger(__name__)


def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()

app = FastAPI(title=settings.APP_NAME)

FIELD_NAME_MAPPING = {
    "name": "Full name",
    "branch": "Branch",
    "regNo": "Registration number",
    "room": "Room number",
    "answers": "Answers",
}

ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConflictError: status.HTTP_409_CONFLICT,
    TimingError: status.HTTP_403_FORBIDDEN,
    ExamUnavailableError: status.HTTP_404_NOT_FOUND,
}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return request validation errors with user-friendly field messages."""
    errors_dict = {}
    for error in exc.errors():
        field_path = error.get("loc", [])
        if not field_path:
            continue
        field_name = str(field_path[-1])
        display_name = FIELD_NAME_MAPPING.get(field_name, field_name.replace("_", " ").title())
        if error.get("type") == "missing":
            errors_dict[field_name] = f"{display_name} is required."
        else:
            errors_dict[field_name] = f"{display_name}: {error.get('msg', 'Invalid input')}"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors()), "errors": errors_dict},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    """Domain errors that escape a router map onto a status by their type."""
    code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    return JSONResponse(status_code=code, content={"detail": exc.message, **exc.details})


# Signed cookie session used for the administrator login
app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET)

# Routers
app.include_router(rooms_router_module.router, prefix="/api", tags=["rooms"])
app.include_router(admin_router_module.router, prefix="/api", tags=["admin"])


@app.get("/")
def home():
    return {"status": "ok", "service": settings.APP_NAME}


@app.on_event("startup")
def on_startup():
    """Initialize database schema."""
    create_db_and_tables()
    logger.info("Database ready at %s", settings.DATABASE_URL)
