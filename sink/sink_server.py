"""FastAPI application of the mock downstream sink.

Accepts the streamed POST requests of the tracker and logs the received
records, useful to watch a tracker end to end without a real consumer.

Usage:
    python -m sink.sink_server
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv
from fastapi import FastAPI

from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from sink.routers.SinkRouter import sink_router

load_dotenv()
logging = setup_logging(name="sink")
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)
    logging.info("Mock sink ready.")
    yield
    logging.info("Mock sink shut down.")


app = FastAPI(
    title="odata_delta_tracker sink",
    description="Mock downstream consumer accepting streamed {\"value\": [...]} bodies via POST /.",
    version=app_version,
    lifespan=lifespan,
)

app.include_router(sink_router)


if __name__ == "__main__":
    import uvicorn

    port = HelperConfig(logger=logging).get_number_val("SINK_SERVER_PORT", default=12345)
    logging.info("Mock sink accepting connections at localhost:%d", port)
    uvicorn.run(app, host="0.0.0.0", port=int(port))
