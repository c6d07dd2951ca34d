"""JSON artifact storage for events, trucks and the geocode cache."""
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, List, Optional, Union

from processor.models import Event, Truck

logger = logging.getLogger(__name__)


def write_json_atomic(path: Union[str, Path], data: Any) -> None:
    """
    Write pretty-printed UTF-8 JSON, replacing the target atomically.

    Args:
        path: Destination file
        data: JSON-serializable data
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix='.tmp'
    )
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write('\n')
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class JsonPersister:
    """Writer for the data files consumed by the static site."""

    EVENTS_FILE = 'events.json'
    TRUCKS_FILE = 'trucks.json'
    GEOCODE_CACHE_FILE = 'geocoded_locations.json'
    LOCK_FILE = '.data_fetcher_lock'

    def __init__(self, data_dir: Union[str, Path]):
        """
        Initialize the persister.

        Args:
            data_dir: Directory holding the data files
        """
        self.data_dir = Path(data_dir)

    @property
    def events_path(self) -> Path:
        return self.data_dir / self.EVENTS_FILE

    @property
    def trucks_path(self) -> Path:
        return self.data_dir / self.TRUCKS_FILE

    @property
    def geocode_cache_path(self) -> Path:
        return self.data_dir / self.GEOCODE_CACHE_FILE

    @property
    def lock_path(self) -> Path:
        return self.data_dir / self.LOCK_FILE

    def write_events(self, events: List[Event]) -> int:
        """
        Replace events.json with the given events.

        Returns:
            Number of events written
        """
        write_json_atomic(self.events_path, [event.to_dict() for event in events])
        logger.info(f"Saved {len(events)} events to {self.events_path}")
        return len(events)

    def write_trucks(self, trucks: List[Truck]) -> int:
        """
        Replace trucks.json with the given trucks.

        Returns:
            Number of trucks written
        """
        write_json_atomic(self.trucks_path, [truck.to_dict() for truck in trucks])
        logger.info(f"Saved {len(trucks)} trucks to {self.trucks_path}")
        return len(trucks)

    def events_age_seconds(self) -> Optional[float]:
        """Seconds since events.json was last written, or None if absent."""
        try:
            mtime = self.events_path.stat().st_mtime
        except FileNotFoundError:
            return None
        return time.time() - mtime
