"""
Process settings, read from the environment first and the repository .env second.
"""
import pathlib

from starlette.config import Config

PACKAGE_DIR = pathlib.Path(__file__).resolve().parent.parent  # adsentry/
BASE_DIR = PACKAGE_DIR.parent  # ./

try:
    config = Config(BASE_DIR / ".env")
except FileNotFoundError:
    config = Config()

# Fingerprint store defaults, relative to the working directory of the run.
DEFAULT_STORE_TYPE = "JSON"
DEFAULT_STORE_PATH = "./data/fingerprints.json"
DEFAULT_STORE_DB_URL = "sqlite:///./data/fingerprints.db"
