from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from src.core.config import settings
from src.core.database import init_db
from src.core.dependencies import get_bot_handler, get_session_registry
from src.core.session_registry import SessionRegistry
from src.models.schemas import BotReply, InboundEvent
from src.services.bot_handler import BotHandler
from src.services.bot_messages import BotMessages
# Import routers
from src.routes.requests import router as requests_router
from src.routes.users import router as users_router
import uvicorn
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing database tables...")
    init_db()
    logger.info("Database tables created successfully.")
    yield


app = FastAPI(title="Volunteer Help Bot Backend", lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Standardize error responses to {"message": "..."}
@app.exception_handler(FastAPIHTTPException)
async def custom_http_exception_handler(request: Request, exc: FastAPIHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

# Include routers
app.include_router(requests_router)
app.include_router(users_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.post("/webhook", response_model=BotReply)
async def webhook(
    event: InboundEvent,
    handler: BotHandler = Depends(get_bot_handler),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Receives one user action from the messenger transport and returns what to show."""
    logger.info(f"📩 {event.type.value} from {event.user_id}: {event.payload or event.text}")
    try:
        return await handler.handle_event(event)
    except Exception as e:
        logger.error(f"Error processing webhook: {e}", exc_info=True)
        # Abandoned flow: drop the whole session so the next message starts clean
        sessions.clear_all(event.user_id)
        return BotReply(messages=[BotMessages.generic_error()])


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT, reload=True)
