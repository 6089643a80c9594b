import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalStorage:
    """Device-local key/value string storage kept in a single JSON file.

    Every write is flushed to disk before returning.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading local storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str):
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str):
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def get_json(self, key: str, default=None):
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            logger.error(f"Error decoding local storage key {key!r}: {e}")
            return default

    def set_json(self, key: str, value):
        self.set_item(key, json.dumps(value))
