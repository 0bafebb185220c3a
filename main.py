"""
Main entry point for the WebUntis feed service.

Starts the refresh scheduler and the HTTP server in one event loop, or runs
a single refresh with --once.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

import structlog
import uvicorn
from pydantic import ValidationError

from api.main import create_app
from scheduler.feed_generator import FeedGenerator
from scheduler.scheduler_service import SchedulerService
from scheduler.store import StateStore
from scheduler.update_orchestrator import UpdateOrchestrator
from untis.client import UntisClient
from utilities.config import FEED_FILE_NAME, SNAPSHOT_FILE_NAME, STATE_FILE_NAME, load_config
from utilities.logger import setup_logging


async def main():
    """Main function to start the feed service."""
    logger = structlog.get_logger(__name__)

    try:
        config = load_config()
    except ValidationError as e:
        logger.error("Invalid configuration, refusing to start", error=str(e))
        sys.exit(1)

    run_once = False
    if len(sys.argv) > 1:
        if sys.argv[1] == '--once':
            run_once = True
        else:
            print(f"Unknown argument: {sys.argv[1]}")
            print("Usage: python main.py [--once]")
            sys.exit(1)

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger = structlog.get_logger(__name__)

    scheduler_config = config.get_scheduler_config()
    api_config = config.get_api_config()

    client = UntisClient(config.get_credentials())
    state_store = StateStore(
        config.get_data_dir(),
        state_file=STATE_FILE_NAME,
        snapshot_file=SNAPSHOT_FILE_NAME
    )
    feed_generator = FeedGenerator(
        scheduler_config.feed,
        config.get_data_dir() / FEED_FILE_NAME
    )
    orchestrator = UpdateOrchestrator(scheduler_config, client, state_store, feed_generator)
    scheduler_service = SchedulerService(scheduler_config, orchestrator)

    logger.info(
        "Feed service configured",
        server=config.untis_server,
        school=config.untis_school,
        categories=config.enabled_categories(),
        interval_seconds=scheduler_config.update_interval_seconds,
        run_once=run_once
    )

    try:
        if run_once:
            await scheduler_service.start(run_once=True)
            return

        await scheduler_service.start()

        server = uvicorn.Server(uvicorn.Config(
            create_app(api_config),
            host=api_config.host,
            port=api_config.port,
            log_level=api_config.log_level.lower(),
            access_log=api_config.debug
        ))
        logger.info("Server started", feed_url=scheduler_config.feed.feed_url)
        await server.serve()

    except Exception as e:
        logger.error("Fatal error occurred", error=str(e))
        sys.exit(1)

    finally:
        scheduler_service.stop()
        await client.aclose()
        logger.info("Feed service stopped")


if __name__ == "__main__":
    asyncio.run(main())
