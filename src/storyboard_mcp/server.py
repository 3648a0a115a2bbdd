"""Main FastMCP server — mounts the storyboard sub-servers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from . import tracing
from .client import GeminiClient
from .media import media_store
from .tools.generation import generation_server
from .tools.infra import infra_server
from .tools.storyboard import storyboard_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Set up tracing on start; on exit release owned clips and close clients."""
    tracing.setup()
    yield {}
    released = media_store.release_all()
    closed = await GeminiClient.close_all()
    tracing.shutdown()
    logger.info("Lifespan shutdown: closed %d client(s), released %d clip(s)", closed, released)


app = FastMCP(
    "storyboard",
    instructions=(
        "Storyboard assistant — split a spoken-word transcript into scenes with "
        "visual direction and image prompts, then generate a still image and a "
        "short animated clip per scene. Start with storyboard_analyze, inspect "
        "with storyboard_get, and generate media per scene."
    ),
    lifespan=_lifespan,
)

app.mount(storyboard_server)
app.mount(generation_server)
app.mount(infra_server)


def main() -> None:
    """Entry-point for ``storyboard-mcp`` console script."""
    app.run()


if __name__ == "__main__":
    main()
