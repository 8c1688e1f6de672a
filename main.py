import logging
from collections import defaultdict
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

import accounts
import admin
import bookings
import comments
import counselors
import cycles
import moderation
import posts
import reminders
import schedules
import stats
from config import CORS_ORIGINS, PORT, RATE_LIMIT_PER_MINUTE, configure_logging
from database import db

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Health Community API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (accounts, admin, posts, comments, moderation, cycles, reminders,
               counselors, schedules, bookings, stats):
    app.include_router(module.router)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/")
def root():
    return {"name": "Health Community API", "status": "ok"}


@app.get("/test")
def test_database():
    info = {"backend": "ok", "database": "down"}
    try:
        db.list_collection_names()
        info["database"] = "ok"
    except Exception as e:
        logger.warning("Database ping failed: %s", e)
        info["error"] = str(e)
    return info


# Simple in-memory rate limiting (per client and path)
requests_counter = defaultdict(list)


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        host = request.client.host if request.client else "unknown"
        key = f"{host}:{request.url.path}"
        now = datetime.now().timestamp()
        window = 60
        recent = [t for t in requests_counter[key] if now - t < window]
        recent.append(now)
        requests_counter[key] = recent
        if len(recent) > RATE_LIMIT_PER_MINUTE:
            logger.warning("Rate limit hit for %s", key)
            return Response(status_code=429)
        return await call_next(request)


if RATE_LIMIT_PER_MINUTE > 0:
    app.add_middleware(RateLimitMiddleware)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
