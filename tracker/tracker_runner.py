"""Tracker runner entry point.

Mirrors a change-tracked OData collection (by default the TM1 transaction
log) to a downstream sink. The initial read forwards all existing entries,
then only the changes are polled every TRACKER_INTERVAL seconds.

Usage:
    python -m tracker.tracker_runner
"""

import asyncio
import signal
import sys

from dotenv import load_dotenv

from shared.clients.odata.ODataClientManager import ODataClientManager
from shared.clients.sink.SinkClientManager import SinkClientManager
from shared.exceptions.TrackerExceptions import TrackerError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from tracker.parsing.CollectionStreamParser import CollectionStreamParser
from tracker.services.TrackerService import TrackerService
from tracker.streaming.RestreamForwarder import RestreamForwarder


async def main() -> int:
    """Run the tracker. Returns the process exit code."""
    load_dotenv()
    logger = setup_logging(name="tracker")
    config = HelperConfig(logger=logger)

    try:
        odata_client = ODataClientManager(helper_config=config).get_client()
        sink_client = SinkClientManager(helper_config=config).get_client()
        mode = config.get_choice_val("TRACKER_MODE", ["track", "iterate"], default="track")
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    forwarder = RestreamForwarder(
        helper_config=config,
        sink_client=sink_client,
        parser=CollectionStreamParser.from_config(config),
    )
    tracker = TrackerService(helper_config=config, odata_client=odata_client, forwarder=forwarder)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, tracker.stop)
        except NotImplementedError:
            # no signal handlers on this platform, Ctrl+C cancels the run instead
            pass

    try:
        await odata_client.boot()
        await sink_client.boot()

        # the server must support the track-changes preference
        await odata_client.do_version_check()

        if mode == "iterate":
            await tracker.do_iterate_collection()
        else:
            await tracker.do_track_collection()
    except TrackerError as e:
        logger.critical("Tracker stopped: %s", e)
        return 1
    finally:
        await odata_client.close()
        await sink_client.close()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
