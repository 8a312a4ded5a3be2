"""
TCO Agent webhook service
FastAPI application that turns removal-order tickets into account bans and replies.
"""

import logging
import os

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from tco_agent.routers import webhook

load_dotenv()

# Configure logging to output to console
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8090

app = FastAPI(
    title="TCO Agent",
    description="Processes TCO removal orders received as support tickets",
    version="0.1.0",
)

app.include_router(webhook.router, tags=["webhook"])


@app.on_event("startup")
async def log_startup() -> None:
    logger.info(f"TCO Agent listening on port {os.getenv('PORT', DEFAULT_PORT)}")


def run() -> None:
    """Console entry point: serve the app on $PORT (default 8090)."""
    port = int(os.getenv("PORT", DEFAULT_PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
