"""Unit tests for the source content providers."""

import asyncio

import pytest

from chunking.content_provider import (
    DirectoryContentProvider,
    InMemoryContentProvider,
    SourceNotFoundError,
)


class TestInMemoryContentProvider:
    def test_get_content(self):
        provider = InMemoryContentProvider({('snap1', 'a.py'): 'x = 1\n'})
        provider.add('snap1', 'b.py', 'y = 2\n')

        assert asyncio.run(provider.get_content('snap1', 'a.py')) == 'x = 1\n'
        assert asyncio.run(provider.get_content('snap1', 'b.py')) == 'y = 2\n'
        assert asyncio.run(provider.get_content('snap2', 'a.py')) is None

    def test_require_content_raises(self):
        provider = InMemoryContentProvider()

        with pytest.raises(SourceNotFoundError) as excinfo:
            asyncio.run(provider.require_content('snap1', 'missing.py'))

        assert excinfo.value.snapshot_id == 'snap1'
        assert excinfo.value.file_path == 'missing.py'
        assert isinstance(excinfo.value, FileNotFoundError)


class TestDirectoryContentProvider:
    def test_reads_snapshot_files(self, snapshot_dir, sample_sources):
        provider = DirectoryContentProvider(snapshot_dir)

        content = asyncio.run(provider.get_content('snap1', 'src/calls.js'))

        assert content == sample_sources['src/calls.js']

    def test_missing_file(self, snapshot_dir):
        provider = DirectoryContentProvider(snapshot_dir)
        assert asyncio.run(provider.get_content('snap1', 'nope.js')) is None
        assert asyncio.run(provider.get_content('other', 'src/calls.js')) is None

    def test_refuses_paths_outside_snapshot(self, snapshot_dir):
        provider = DirectoryContentProvider(snapshot_dir)
        (snapshot_dir / 'secret.txt').write_text('hidden')

        assert provider.resolve('snap1', '../secret.txt') is None
        assert asyncio.run(provider.get_content('snap1', '../secret.txt')) is None

    def test_refuses_snapshot_ids_outside_storage(self, snapshot_dir, caplog):
        provider = DirectoryContentProvider(snapshot_dir)
        outside = snapshot_dir.parent / 'outside'
        outside.mkdir()
        (outside / 'notes.txt').write_text('hidden')

        assert provider.resolve('../outside', 'notes.txt') is None
        assert asyncio.run(provider.get_content('../outside', 'notes.txt')) is None
        assert provider.resolve('.', 'snap1/src/calls.js') is None
        assert 'outside storage directory' in caplog.text

    def test_leading_slash_stays_inside_snapshot(self, snapshot_dir):
        provider = DirectoryContentProvider(snapshot_dir)
        resolved = provider.resolve('snap1', '/src/calls.js')
        assert resolved == (snapshot_dir / 'snap1' / 'src' / 'calls.js').resolve()

    def test_storage_dir_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv('CODE_CHUNKER_STORAGE', str(tmp_path))
        provider = DirectoryContentProvider()
        assert provider.storage_dir == tmp_path
