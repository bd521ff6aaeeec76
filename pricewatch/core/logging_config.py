import logging
import os
from datetime import datetime

def configure_logging(debug: bool = None):
    """Configure application logging."""
    os.makedirs('logs', exist_ok=True)
    log_filename = f"logs/pricewatch_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    if debug is None:
        debug = os.getenv("DEBUG", "").lower() == "true"
    log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_filename)
        ]
    )

    # Third-party clients are noisy at DEBUG
    logging.getLogger('httpx').setLevel(logging.INFO)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('aiohttp').setLevel(logging.INFO)

    if log_level == logging.DEBUG:
        logging.getLogger('pricewatch.services').setLevel(logging.DEBUG)
        logging.getLogger('pricewatch.clients').setLevel(logging.DEBUG)

    return log_filename

def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
