import configparser
import os
import logging

# Get base directory
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_PATH = os.path.join(BASE_DIR, "config.ini")

# Load config
config = configparser.ConfigParser()
config.read(CONFIG_PATH)

if not config.sections():
    raise RuntimeError("config.ini is missing or empty")

# Settings
MODE = config.get("settings", "mode", fallback="DEBUG")
LOG_LEVEL = config.get("logging", "level", fallback="INFO").upper()
LOG_PATH = os.path.join(BASE_DIR, config.get("logging", "log_file", fallback="app.log"))

# Run sessions (in-memory only)
RUN_TTL_SECONDS = config.getint("runs", "ttl_seconds", fallback=7200)
MAX_RUNS = config.getint("runs", "max_runs", fallback=32)

# Uploads
MAX_UPLOAD_ROWS = config.getint("upload", "max_rows", fallback=200000)


def setup_logging():
    logging.basicConfig(
        filename=LOG_PATH,
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )


setup_logging()

logger = logging.getLogger(__name__)
logger.info("Loaded configuration from %s (mode=%s)", CONFIG_PATH, MODE)
