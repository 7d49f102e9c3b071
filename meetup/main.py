import logging

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meetup.config import get_settings
from meetup.controllers.chat import router as chat_router
from meetup.controllers.events import router as events_router
from meetup.controllers.health import router as health_router
from meetup.controllers.ws_events import router as ws_events_router
from meetup.errors import register_exception_handlers
from meetup.lifespan import lifespan
from meetup.middleware import HTTPLogMiddleware

settings = get_settings()

app = FastAPI(title="MeetUp Scheduling API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_origin_regex=settings.cors.origins_regex or None,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.debug.request:
    logging.getLogger("meetup.http").setLevel(logging.DEBUG)
    app.add_middleware(HTTPLogMiddleware)

if settings.debug.websocket:
    logging.getLogger("meetup.ws.events").setLevel(logging.DEBUG)
    logging.getLogger("meetup.sync").setLevel(logging.DEBUG)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(events_router)
app.include_router(chat_router)
app.include_router(ws_events_router)
