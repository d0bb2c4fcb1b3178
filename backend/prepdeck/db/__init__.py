from pathlib import Path

from prepdeck.config import settings
from prepdeck.db.sqlite import SQLiteStorage


def init_storage(data_dir: Path) -> SQLiteStorage:
    storage = SQLiteStorage(Path(data_dir) / settings.sqlite_filename)
    storage.init()
    return storage
