# app/main.py

from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from api.routes import rooms, challenges
from api.exception_handlers import register_exception_handlers
from config.settings import settings
from infrastructure.redis_connection import redis_connection
from infrastructure.postgres_connection import postgres_connection
import socketio
import asyncio
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events"""
    # Startup: Initialize connections (history stores are optional unless configured otherwise)
    await redis_connection.connect(required=settings.PERSISTENCE_REQUIRED)
    await postgres_connection.connect(required=settings.PERSISTENCE_REQUIRED)
    if settings.DB_CREATE_TABLES:
        import models  # noqa: F401 - registers tables with Base
        await postgres_connection.create_tables()

    # Start the sweeper that evicts abandoned and expired rooms
    from services.room_sweeper import RoomSweeper
    from services.room_registry import room_registry
    from services.history_service import history_service
    from api.socketio import router

    room_sweeper = RoomSweeper(room_registry, router)
    room_sweeper_task = asyncio.create_task(room_sweeper.start())
    logger.info("Room sweeper started")

    yield

    # Shutdown: Stop background tasks, flush pending writes and close connections
    room_sweeper.stop()
    room_sweeper_task.cancel()
    try:
        await asyncio.wait_for(room_sweeper_task, timeout=5.0)
    except (asyncio.CancelledError, asyncio.TimeoutError):
        pass

    await history_service.drain()

    await postgres_connection.disconnect()
    await redis_connection.disconnect()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Register domain exception handlers
register_exception_handlers(app)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for Docker and monitoring"""
    return {"status": "healthy"}


# CORS configuration - important: can't use "*" with allow_credentials=True
app.add_middleware(
    middleware_class=CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,  # Required for cookies/authentication
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms.router, prefix="/v1")
app.include_router(challenges.router, prefix="/v1")

# Import Socket.IO instance; room namespace is registered in api/socketio/__init__.py
from api.socketio import sio

# Wrap FastAPI app with Socket.IO
# This allows Socket.IO to handle /socket.io/* paths and pass everything else to FastAPI
app = socketio.ASGIApp(sio, app)
