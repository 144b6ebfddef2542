"""
Tests for JSON config document patching.

Run: python3 -m pytest tests/test_config_patcher.py -v
"""

import json
from unittest.mock import patch

import pytest

from core.errors import ConfigIOError, ConfigParseError
from utils.config_patcher import (
    ConfigDocument,
    ConfigPatcher,
    SessionStoreSetting,
    SESSION_STORE_PATH,
    write_text_atomic,
)


class TestConfigDocument:
    """Tests for the in-memory document."""

    def test_loads_rejects_non_object(self):
        with pytest.raises(ConfigParseError):
            ConfigDocument.loads("[1, 2]")

    def test_loads_rejects_garbage(self):
        with pytest.raises(ConfigParseError):
            ConfigDocument.loads("{not json")

    def test_read_missing_file_is_empty(self, tmp_path):
        doc = ConfigDocument.read(tmp_path / "missing.json")
        assert doc.data == {}

    def test_read_invalid_utf8_is_parse_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_bytes(b"\xff\xfe")

        with pytest.raises(ConfigParseError):
            ConfigDocument.read(path)

    def test_get_nested(self):
        doc = ConfigDocument({'a': {'b': {'c': 3}}})

        assert doc.get(['a', 'b', 'c']) == 3
        assert doc.get(['a', 'x'], default='d') == 'd'
        assert doc.get(['a', 'b', 'c', 'd'], default=None) is None

    def test_get_str_only_accepts_strings(self):
        doc = ConfigDocument({'a': {'b': 5}})

        assert doc.get_str(['a', 'b']) is None
        assert doc.get_str(['a', 'b'], default='x') == 'x'

    def test_set_creates_intermediates(self):
        doc = ConfigDocument()
        doc.set(list(SESSION_STORE_PATH), "/tmp/s.json")

        assert doc.data == {'inbound': {'reply': {'session': {'store': "/tmp/s.json"}}}}

    def test_set_replaces_non_object_on_path(self):
        doc = ConfigDocument({'inbound': "oops", 'other': 1})
        doc.set(list(SESSION_STORE_PATH), "/tmp/s.json")

        assert doc.get(SESSION_STORE_PATH) == "/tmp/s.json"
        assert doc.data['other'] == 1

    def test_set_empty_path_rejected(self):
        with pytest.raises(ValueError):
            ConfigDocument().set([], 1)

    def test_dumps_sorted_and_indented(self):
        doc = ConfigDocument({'b': 1, 'a': {'d': 2, 'c': 3}})
        text = doc.dumps()

        assert text.endswith("\n")
        assert text.index('"a"') < text.index('"b"')
        assert text.index('"c"') < text.index('"d"')
        assert '\n  "a"' in text


class TestConfigPatcher:
    """Read-modify-write of a single field."""

    def test_patch_next_to_other_key(self, tmp_path):
        path = tmp_path / "clawdis.json"
        path.write_text('{"other":{"x":1}}')

        ConfigPatcher.set_path(path, SESSION_STORE_PATH, "/tmp/a.json")

        assert ConfigPatcher.get_path(path, ["other", "x"]) == 1
        assert ConfigPatcher.get_path(path, SESSION_STORE_PATH) == "/tmp/a.json"

    def test_preserves_unrelated_keys(self, tmp_path):
        path = tmp_path / "clawdis.json"
        original = {
            'agent': {'model': 'x', 'list': [1, 2, 3]},
            'inbound': {'reply': {'mode': 'text', 'session': {'scope': 'per-sender'}}},
        }
        path.write_text(json.dumps(original))

        ConfigPatcher.set_path(path, SESSION_STORE_PATH, "/data/sessions.json")

        written = json.loads(path.read_text())
        expected = json.loads(json.dumps(original))
        expected['inbound']['reply']['session']['store'] = "/data/sessions.json"
        assert written == expected

    def test_creates_file_and_directories(self, tmp_path):
        path = tmp_path / "deep" / "dir" / "clawdis.json"

        ConfigPatcher.set_path(path, SESSION_STORE_PATH, "/s.json")

        assert json.loads(path.read_text()) == {'inbound': {'reply': {'session': {'store': "/s.json"}}}}

    def test_malformed_document_treated_as_empty(self, tmp_path):
        path = tmp_path / "clawdis.json"
        path.write_text("{broken")

        ConfigPatcher.set_path(path, ['a', 'b'], True)

        assert json.loads(path.read_text()) == {'a': {'b': True}}

    def test_invalid_utf8_treated_as_empty(self, tmp_path):
        path = tmp_path / "clawdis.json"
        path.write_bytes(b'{"other": "\xff\xfe garbage')

        ConfigPatcher.set_path(path, SESSION_STORE_PATH, "/tmp/a.json")

        assert json.loads(path.read_text()) == {'inbound': {'reply': {'session': {'store': "/tmp/a.json"}}}}

    def test_get_path_default(self, tmp_path):
        path = tmp_path / "clawdis.json"
        assert ConfigPatcher.get_path(path, ['x'], default='fallback') == 'fallback'

    def test_failed_write_leaves_original(self, tmp_path):
        """Test a failed write raises and leaves no partial file or temp file."""
        path = tmp_path / "clawdis.json"
        path.write_text('{"keep": true}')

        with patch('utils.config_patcher.os.replace', side_effect=OSError("disk full")):
            with pytest.raises(ConfigIOError):
                ConfigPatcher.set_path(path, SESSION_STORE_PATH, "/s.json")

        assert json.loads(path.read_text()) == {'keep': True}
        assert sorted(p.name for p in tmp_path.iterdir()) == ["clawdis.json"]

    def test_unserializable_value(self, tmp_path):
        path = tmp_path / "clawdis.json"

        with pytest.raises(ConfigIOError):
            ConfigPatcher.set_path(path, ['a'], object())

        assert not path.exists()


class TestWriteTextAtomic:
    """Tests for write_text_atomic."""

    def test_replaces_content(self, tmp_path):
        path = tmp_path / "file.json"
        path.write_text("old")

        write_text_atomic(path, "new")

        assert path.read_text() == "new"

    def test_parent_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with pytest.raises(ConfigIOError):
            write_text_atomic(blocker / "file.json", "x")


class TestSessionStoreSetting:
    """The session store path editor."""

    def test_load_default_when_unset(self, tmp_path):
        setting = SessionStoreSetting(tmp_path / "clawdis.json", default_path="/default.json")

        assert setting.load() == "/default.json"

    def test_load_stored_value(self, tmp_path):
        path = tmp_path / "clawdis.json"
        path.write_text(json.dumps({'inbound': {'reply': {'session': {'store': "/mine.json"}}}}))

        setting = SessionStoreSetting(path, default_path="/default.json")

        assert setting.load() == "/mine.json"

    def test_save_trims(self, tmp_path):
        path = tmp_path / "clawdis.json"
        setting = SessionStoreSetting(path, default_path="/default.json")

        assert setting.save("  /trimmed.json \n") is True
        assert setting.value == "/trimmed.json"
        assert ConfigPatcher.get_path(path, SESSION_STORE_PATH) == "/trimmed.json"

    def test_save_empty_uses_default(self, tmp_path):
        path = tmp_path / "clawdis.json"
        setting = SessionStoreSetting(path, default_path="/default.json")

        assert setting.save("   ") is True
        assert ConfigPatcher.get_path(path, SESSION_STORE_PATH) == "/default.json"

    def test_failed_save_keeps_edited_value(self, tmp_path):
        path = tmp_path / "clawdis.json"
        setting = SessionStoreSetting(path, default_path="/default.json")

        with patch('utils.config_patcher.os.replace', side_effect=OSError("read-only")):
            assert setting.save("/edited.json") is False

        assert setting.value == "/edited.json"
        assert "read-only" in setting.last_error
        assert not path.exists()

    def test_default_path_under_state_dir(self, fake_home):
        setting = SessionStoreSetting()

        assert setting.config_path == fake_home / ".clawdis" / "clawdis.json"
        assert setting.default_path == str(fake_home / ".clawdis" / "sessions" / "sessions.json")
