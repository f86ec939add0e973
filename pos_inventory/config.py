import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME, DB_PATH_ENV

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR


def resolve_db_path() -> Path:
    """POS_DB_PATH wins over the bundled data/pos.db location."""
    override = os.environ.get(DB_PATH_ENV, "").strip()
    return Path(override) if override else DATA_PATH / DB_FILE_NAME


DB_PATH = resolve_db_path()
