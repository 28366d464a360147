"""Router of the mock downstream sink.

The tracker POSTs every body it forwards to POST /. The handler reads the
request as a stream, re-parses it with the same collection parser the
tracker uses, and logs each received record.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shared.dependencies.auth import verify_api_key
from shared.exceptions.TrackerExceptions import MalformedStructure, RecordDecodeFailed
from shared.models.collection import ParseResult
from tracker.parsing.CollectionStreamParser import AsyncByteReader, CollectionStreamParser

sink_router = APIRouter()


@sink_router.post(
    "/",
    dependencies=[Depends(verify_api_key)],
    tags=["Sink"],
)
async def receive_records(request: Request) -> JSONResponse:
    """Accept a streamed {"value":[...]} body.

    Args:
        request (Request): The incoming request, its body is consumed as it arrives.

    Returns:
        JSONResponse: {"status": "accepted", "records": n}, or 400 with the parse error.
    """
    logging = request.app.state.logging
    logging.info("Sink received a connection!")
    received = 0

    async def on_unit(unit: ParseResult) -> None:
        nonlocal received
        if unit.is_final:
            return
        received += 1
        logging.info("Record %d: %s", received, unit.record)

    parser = CollectionStreamParser()
    try:
        await parser.parse(AsyncByteReader(request.stream()), on_unit)
    except (MalformedStructure, RecordDecodeFailed) as e:
        logging.error("Rejected body after %d record(s): %s", received, e)
        return JSONResponse(status_code=400, content={"status": "rejected", "records": received, "detail": str(e)})

    return JSONResponse(content={"status": "accepted", "records": received})


@sink_router.get("/healthz", tags=["Health"])
async def healthcheck() -> JSONResponse:
    return JSONResponse(content={"status": "ok"})
