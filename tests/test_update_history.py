"""
Tests for the update history management functionality.
"""

import pytest
import json
import threading
from datetime import datetime, timedelta
from unittest.mock import patch

from auto_package_update.utils.update_history import UpdateHistoryManager, UpdateHistoryEntry


@pytest.fixture
def history_file(tmp_path):
    return tmp_path / "history" / "update_history.json"


class TestUpdateHistoryEntry:
    """Test UpdateHistoryEntry dataclass."""

    def test_to_dict(self):
        """Test serialization to dictionary."""
        now = datetime.now()
        entry = UpdateHistoryEntry(
            timestamp=now,
            packages=['requests', 'flask'],
            succeeded=False,
            failed=['flask'],
            duration_sec=12.5
        )

        data = entry.to_dict()

        assert data['timestamp'] == now.isoformat()
        assert data['packages'] == ['requests', 'flask']
        assert data['succeeded'] is False
        assert data['failed'] == ['flask']
        assert data['duration_sec'] == 12.5

    def test_from_dict_without_failed(self):
        """Entries written without a failed list load with an empty one."""
        data = {
            'timestamp': '2024-01-15T10:30:00.123456',
            'packages': ['numpy'],
            'succeeded': True,
            'duration_sec': 120.8
        }

        entry = UpdateHistoryEntry.from_dict(data)

        assert entry.timestamp == datetime.fromisoformat(data['timestamp'])
        assert entry.packages == ['numpy']
        assert entry.failed == []


class TestUpdateHistoryManager:
    """Test UpdateHistoryManager functionality."""

    def test_init_default_path(self, isolated_home):
        """Test manager initialization with default path."""
        manager = UpdateHistoryManager()
        assert manager.path == isolated_home / ".local" / "share" / "auto-package-update" / "update_history.json"

    def test_add_and_load(self, history_file):
        """Test adding entries and loading them back newest first."""
        manager = UpdateHistoryManager(str(history_file))

        manager.add(UpdateHistoryEntry(
            timestamp=datetime.now() - timedelta(hours=1),
            packages=['package1'],
            succeeded=True,
            duration_sec=30.0
        ))
        manager.add(UpdateHistoryEntry(
            timestamp=datetime.now(),
            packages=['package2', 'package3'],
            succeeded=False,
            failed=['package3'],
            duration_sec=45.5
        ))

        entries = UpdateHistoryManager(str(history_file)).all()

        assert len(entries) == 2
        assert entries[0].packages == ['package2', 'package3']
        assert entries[0].failed == ['package3']
        assert entries[1].packages == ['package1']

    def test_add_entry_helper(self, history_file):
        manager = UpdateHistoryManager(str(history_file))
        entry = manager.add_entry(['a', 'b'], [], 3.25)

        assert entry.succeeded is True
        assert manager.all()[0].duration_sec == 3.25

    def test_retention_trim(self, history_file):
        """Test automatic retention trimming."""
        manager = UpdateHistoryManager(str(history_file), retention_days=1)

        manager.add(UpdateHistoryEntry(
            timestamp=datetime.now() - timedelta(days=2),
            packages=['old_package'],
            succeeded=True
        ))
        manager.add(UpdateHistoryEntry(
            timestamp=datetime.now(),
            packages=['new_package'],
            succeeded=True
        ))

        entries = UpdateHistoryManager(str(history_file), retention_days=1).all()
        assert [e.packages for e in entries] == [['new_package']]

    def test_cached_entries_respect_retention(self, history_file):
        """Entries trimmed on save never come back from the same manager."""
        manager = UpdateHistoryManager(str(history_file), retention_days=1)
        manager.add(UpdateHistoryEntry(
            timestamp=datetime.now() - timedelta(days=2),
            packages=['old_package'],
            succeeded=True
        ))

        assert manager.all() == []

    def test_entry_cap(self, history_file):
        manager = UpdateHistoryManager(str(history_file))
        with patch('auto_package_update.utils.update_history.MAX_HISTORY_ENTRIES', 3):
            for i in range(5):
                manager.add(UpdateHistoryEntry(
                    timestamp=datetime.now() - timedelta(minutes=10 - i),
                    packages=[f'pkg_{i}'],
                    succeeded=True
                ))
            entries = manager.all()

        assert [e.packages[0] for e in entries] == ['pkg_4', 'pkg_3', 'pkg_2']

    def test_clear(self, history_file):
        """Test clearing all history."""
        manager = UpdateHistoryManager(str(history_file))
        manager.add_entry(['package1'], [])
        assert len(manager.all()) == 1

        manager.clear()

        assert manager.all() == []
        assert json.loads(history_file.read_text()) == []

    def test_export_json(self, history_file, tmp_path):
        """Test JSON export functionality."""
        manager = UpdateHistoryManager(str(history_file))
        manager.add(UpdateHistoryEntry(datetime.now() - timedelta(hours=2), ['pkg1'], True))
        manager.add(UpdateHistoryEntry(datetime.now() - timedelta(hours=1), ['pkg2'], False, ['pkg2']))

        export_file = tmp_path / "exported.json"
        manager.export(str(export_file), 'json')

        data = json.loads(export_file.read_text())
        assert [d['packages'] for d in data] == [['pkg2'], ['pkg1']]

    def test_export_csv(self, history_file, tmp_path):
        """Test CSV export functionality."""
        manager = UpdateHistoryManager(str(history_file))
        manager.add(UpdateHistoryEntry(
            timestamp=datetime.now().replace(microsecond=0),
            packages=['test_pkg'],
            succeeded=True,
            duration_sec=15.5
        ))

        export_file = tmp_path / "exported.csv"
        manager.export(str(export_file), 'csv')

        lines = export_file.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0] == 'timestamp,packages,succeeded,failed,duration_sec'
        assert 'test_pkg' in lines[1]
        assert 'Yes' in lines[1]
        assert '15.5' in lines[1]

    def test_export_unknown_format(self, history_file, tmp_path):
        manager = UpdateHistoryManager(str(history_file))
        with pytest.raises(ValueError):
            manager.export(str(tmp_path / "out.xml"), 'xml')

    def test_file_corruption_handling(self, history_file):
        """Test handling of corrupted history files."""
        history_file.parent.mkdir(parents=True)
        history_file.write_text('{"invalid": json content')

        assert UpdateHistoryManager(str(history_file)).all() == []

    def test_missing_file(self, history_file):
        assert UpdateHistoryManager(str(history_file)).all() == []

    def test_concurrent_add(self, history_file):
        """Test thread safety with concurrent access."""
        manager = UpdateHistoryManager(str(history_file))

        threads = [
            threading.Thread(target=manager.add_entry, args=([f'pkg_{i}'], []))
            for i in range(10)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(UpdateHistoryManager(str(history_file)).all()) == 10
