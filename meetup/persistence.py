import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Sequence

logger = logging.getLogger(__name__)

RECORD_KEY = "meetup/locations"
MAX_ADDRESSES = 3


class LastAddressesStore:
    """Stores the last submitted address strings to prefill the next session.

    A single record under a fixed key, overwritten wholesale on every save.
    """

    def __init__(self, path):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read stored addresses from %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, addresses: Sequence[str]) -> List[str]:
        record = [str(a) if a is not None else "" for a in list(addresses)[:MAX_ADDRESSES]]
        data = self._read()
        data[RECORD_KEY] = record
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".meetup-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        return record

    def load(self) -> List[str]:
        record = self._read().get(RECORD_KEY) or []
        if not isinstance(record, list):
            return []
        return [str(a) for a in record[:MAX_ADDRESSES]]
