"""
JSON config document patching.

Updates one nested field of a small JSON document that another process
(the gateway CLI) owns, without disturbing anything else in it.

Usage:
    from utils.config_patcher import ConfigPatcher

    ConfigPatcher.set_path(path, ["inbound", "reply", "session", "store"], "/tmp/a.json")
    store = ConfigPatcher.get_path(path, ["inbound", "reply", "session", "store"])
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from core.errors import ConfigIOError, ConfigParseError
from utils.paths import ClawdisPaths

logger = logging.getLogger(__name__)

SESSION_STORE_PATH = ("inbound", "reply", "session", "store")


class ConfigDocument:
    """A parsed JSON object with path-based typed accessors.

    Values off the accessed path are never touched, so a round trip through
    load/set/dumps preserves every unrelated key.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = data if data is not None else {}

    @classmethod
    def loads(cls, text: str) -> 'ConfigDocument':
        """Parse a document.

        Raises:
            ConfigParseError: if the text is not a JSON object
        """
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError) as e:
            raise ConfigParseError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigParseError(f"Expected a JSON object, got {type(data).__name__}")
        return cls(data)

    @classmethod
    def read(cls, path: Path) -> 'ConfigDocument':
        """Read a document from disk.

        A missing file is an empty document.

        Raises:
            ConfigParseError: if the file exists but is malformed
            ConfigIOError: if the file exists but cannot be read
        """
        path = Path(path)
        try:
            text = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return cls()
        except UnicodeDecodeError as e:
            raise ConfigParseError(f"Invalid UTF-8: {e}") from e
        except OSError as e:
            raise ConfigIOError(f"Cannot read {path}: {e}", path=path) from e
        return cls.loads(text)

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, field_path: Sequence[str], default: Any = None) -> Any:
        node: Any = self._data
        for key in field_path:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def get_str(self, field_path: Sequence[str], default: Optional[str] = None) -> Optional[str]:
        """Like get(), but only a string value counts as present."""
        value = self.get(field_path)
        return value if isinstance(value, str) else default

    def set(self, field_path: Sequence[str], value: Any) -> None:
        """Set the value at field_path, creating intermediate objects.

        A non-object value sitting on the path is replaced by an object.
        """
        if not field_path:
            raise ValueError("field_path must not be empty")

        node = self._data
        for key in field_path[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[field_path[-1]] = value

    def dumps(self) -> str:
        """Serialize with sorted keys so diffs of the file stay stable."""
        return json.dumps(self._data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def write_text_atomic(path: Path, content: str) -> None:
    """Write content to path via a temp file in the same directory + rename.

    Raises:
        ConfigIOError: if the directory cannot be created or the write fails
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigIOError(f"Cannot create {path.parent}: {e}", path=path) from e

    tmp_path = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix='.tmp')
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        raise ConfigIOError(f"Cannot write {path}: {e}", path=path) from e
    finally:
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                logger.debug(f"Could not remove temp file {tmp_path}")


class ConfigPatcher:
    """Read-modify-write of one nested field in a JSON document."""

    @staticmethod
    def load(document_path: Path) -> ConfigDocument:
        """Load a document, treating a malformed one as empty."""
        try:
            return ConfigDocument.read(document_path)
        except ConfigParseError as e:
            logger.warning(f"Ignoring malformed config {document_path}: {e}")
            return ConfigDocument()

    @classmethod
    def get_path(cls, document_path: Path, field_path: Sequence[str], default: Any = None) -> Any:
        """Read one field; any read or parse problem yields the default."""
        try:
            return cls.load(document_path).get(field_path, default)
        except ConfigIOError as e:
            logger.warning(str(e))
            return default

    @classmethod
    def set_path(cls, document_path: Path, field_path: Sequence[str], value: Any) -> None:
        """
        Set field_path to value in the document at document_path.

        The document is fully serialized before anything touches the disk,
        and written atomically, so a failure never leaves a corrupt file.

        Args:
            document_path: JSON file to update (created if missing)
            field_path: Ordered keys, e.g. ("inbound", "reply", "session", "store")
            value: JSON-serializable value

        Raises:
            ConfigIOError: if the existing file can't be read, or the new
                one can't be written
        """
        document_path = Path(document_path)
        document = cls.load(document_path)
        document.set(list(field_path), value)

        try:
            content = document.dumps()
        except (TypeError, ValueError) as e:
            raise ConfigIOError(f"Value for {'.'.join(field_path)} is not JSON serializable: {e}",
                                path=document_path) from e

        write_text_atomic(document_path, content)
        logger.info(f"Saved {'.'.join(field_path)} to {document_path}")


class SessionStoreSetting:
    """The CLI session store path, kept in ~/.clawdis/clawdis.json.

    The edited value survives a failed save; the failure is kept in
    last_error for display.
    """

    def __init__(self, config_path: Optional[Path] = None, default_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else ClawdisPaths.get_config_file()
        self.default_path = default_path or str(ClawdisPaths.get_default_session_store())
        self.value = self.default_path
        self.last_error: Optional[str] = None

    def load(self) -> str:
        stored = ConfigPatcher.get_path(self.config_path, SESSION_STORE_PATH)
        self.value = stored if isinstance(stored, str) else self.default_path
        return self.value

    def save(self, value: Optional[str] = None) -> bool:
        """Persist value (or the current one); empty input means the default."""
        if value is not None:
            self.value = value
        trimmed = (self.value or "").strip()
        to_store = trimmed or self.default_path

        try:
            ConfigPatcher.set_path(self.config_path, SESSION_STORE_PATH, to_store)
        except ConfigIOError as e:
            self.last_error = str(e)
            logger.error(f"Failed to save session store path: {e}")
            return False

        self.value = to_store
        self.last_error = None
        return True
