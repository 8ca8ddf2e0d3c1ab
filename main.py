import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import catalog
import invoices
import orders
import uploads
import users
from config import get_settings
from database import ensure_indexes, get_db
from errors import ApiError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        db = get_db()
        db.command("ping")
        ensure_indexes(db)
    except (PyMongoError, RuntimeError) as e:
        log.critical("MongoDB connection error: %s", e)
        raise SystemExit(1)
    log.info("Server running in %s mode on port %s", settings.app_env, settings.port)
    yield


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------- Error handling -----------------------
def error_body(message: str, exc: Exception | None = None) -> dict:
    stack = None
    if exc is not None and not get_settings().is_production:
        stack = "".join(traceback.format_exception(exc))
    return {"message": message, "stack": stack}


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Something went wrong"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Not Found - {request.url.path}"
    return JSONResponse(status_code=exc.status_code, content=error_body(message, exc), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
    return JSONResponse(status_code=400, content=error_body(message, exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(str(exc) or "Internal Server Error", exc))


# ----------------------- Routes -----------------------
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(catalog.router)
app.include_router(orders.router)
app.include_router(invoices.router)
app.include_router(uploads.router)


@app.get("/")
def read_root():
    return {"name": "Storefront API", "status": "ok"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    info = {"backend": "running", "database": "disconnected"}
    try:
        info["collections"] = db.list_collection_names()[:10]
        info["database"] = "connected"
    except PyMongoError as e:
        info["error"] = str(e)
    return info


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
