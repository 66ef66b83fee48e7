import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from topicgen.config import configure_logging, get_settings
from topicgen.api.routes import documents, messages

settings = get_settings()

# Configure application logging
configure_logging(settings)
logger = logging.getLogger("topicgen")

app = FastAPI(
    title=settings.app_name,
    description="Slack channel history to topic-organized markdown documents",
    version="0.1.0",
)

# Read-only API, open to any origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Include routers
app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])


@app.get("/")
async def root():
    return {
        "message": "Welcome to TopicGen - Slack channel history to topic documents",
        "version": "0.1.0",
        "endpoints": {
            "documents": "/api/documents",
            "messages": "/api/messages/grouped",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": settings.app_name}
