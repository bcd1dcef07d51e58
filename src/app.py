from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils import NotificationHandler  # type: ignore  # noqa

logger = logging.getLogger(__name__)

load_dotenv()
notification_handler = NotificationHandler()

JWT_SECRET = os.environ["JWT_SECRET"]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        logger.info(f"📥 {request.method} {request.url.path}")

        response = await call_next(request)

        logger.info(f"📤 Response status: {response.status_code}")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    await notification_handler.init()
    app.state.jwt_secret = JWT_SECRET
    yield
    await notification_handler.close()


app = FastAPI(title="Fleet Ops Notifications API", lifespan=lifespan)
app.state.jwt_secret = JWT_SECRET

app.add_middleware(RequestLoggingMiddleware)


@app.get("/")
async def root():
    return {"message": "ok"}


from .routes import *  # noqa
