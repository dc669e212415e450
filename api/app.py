from dotenv import load_dotenv

# Load environment variables BEFORE any imports that read settings
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from api.routers import health, webhook
from reviewer.config import config

logging.basicConfig(
    level=getattr(logging, config.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Logs the effective model settings on startup.
    """
    logger.info(f"Review bot starting (model={config.ai_model}, endpoint={config.ollama_url})")
    if config.github_app_id is None:
        logger.warning("GITHUB_APP_ID is not set; pull_request webhooks will be rejected")
    yield


# Create FastAPI application
app = FastAPI(
    title="PR Review Bot",
    description="""
    GitHub App that reviews pull requests.

    ## Features

    * **Static analysis** - flake8 and eslint findings for changed files
    * **AI review** - per-file review by a local Ollama model, chunked for large files
    * **One summary comment** - updated in place on every push instead of duplicated
    """,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])

app.include_router(
    webhook.router,
    prefix="/api/v1/webhook",
    tags=["Webhook"]
)


def run_server():
    """
    Run the API server.

    This function is used as an entry point for the CLI command.
    """
    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=8000,
    )


if __name__ == "__main__":
    run_server()
