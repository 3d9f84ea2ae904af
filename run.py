import sys
import logging
import uvicorn
from bot.config.settings import HOST, PORT, LOG_LEVEL

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_server():
    """Run the FastAPI server"""
    logger.info(f"Starting trade bot on {HOST}:{PORT}...")
    uvicorn.run("app.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    try:
        run_server()
    except KeyboardInterrupt:
        logger.info("\nShutting down...")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
