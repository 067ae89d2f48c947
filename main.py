import logging
import signal
import time

from core.app_context import AppContext
from core.config_loader import load_config
from database.init_db import init_db
from pipeline.maintenance import MaintenanceWorker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False


def main():
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config()
    logging.getLogger().setLevel(config.log_level.upper())

    ctx = AppContext.build(config)

    # Initialize DB (with retry logic)
    init_db(ctx.engine)

    health = ctx.fork_manager.health_check()
    logger.info(f"Scoring service starting: database {health['database_url']} is {health['status']}")

    maintenance = MaintenanceWorker(ctx, interval_seconds=config.forks.cleanup_interval_minutes * 60)
    maintenance.start()

    try:
        while running:
            time.sleep(1)
    finally:
        logger.info("Stopping scoring service...")
        maintenance.stop(timeout=5)
        ctx.shutdown(timeout=30)
        logger.info("Scoring service stopped")


if __name__ == "__main__":
    main()
