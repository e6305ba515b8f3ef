"""
Tests for on-disk key storage.
"""

import re
import shutil
import stat
from datetime import datetime, timezone

import pytest

from gitfoil.core.errors import (
    BackupFailed,
    InvalidFormat,
    InvalidPassword,
    NotInitialized,
    RemoveFailed,
)
from gitfoil.core.keys.keyring_store import KeyringStore, backup_timestamp

from conftest import TEST_ITERATIONS, skip_on_windows


class TestLayout:

    def test_paths(self, store, git_dir):
        assert store.key_dir == git_dir / "git_foil"
        assert store.plaintext_path.name == "master.key"
        assert store.wrapped_path.name == "master.key.enc"

    @skip_on_windows
    def test_directory_mode_forced(self, store):
        store.key_dir.mkdir(mode=0o755)
        store.key_dir.chmod(0o755)
        store.ensure_directory()
        assert stat.S_IMODE(store.key_dir.stat().st_mode) == 0o700

    def test_nothing_exists_initially(self, store):
        assert not store.plaintext_exists()
        assert not store.wrapped_exists()


class TestPlaintext:

    def test_round_trip(self, store, keypair):
        store.write_plaintext(keypair)
        assert store.plaintext_exists()
        assert store.read_plaintext() == keypair

    @skip_on_windows
    def test_file_mode(self, store, keypair):
        store.write_plaintext(keypair)
        assert stat.S_IMODE(store.plaintext_path.stat().st_mode) == 0o600
        assert stat.S_IMODE(store.key_dir.stat().st_mode) == 0o700

    def test_missing_is_not_initialized(self, store):
        with pytest.raises(NotInitialized):
            store.read_plaintext()

    def test_corrupt_is_invalid_format(self, store):
        store.ensure_directory()
        store.plaintext_path.write_bytes(b"not a keypair")
        with pytest.raises(InvalidFormat):
            store.read_plaintext()

    def test_delete_is_idempotent(self, store, keypair):
        store.write_plaintext(keypair)
        store.delete_plaintext()
        store.delete_plaintext()
        assert not store.plaintext_exists()


class TestWrapped:

    def test_round_trip(self, store, keypair, password):
        store.write_wrapped(keypair, password)
        assert store.wrapped_exists()
        assert store.read_wrapped(password) == keypair

    def test_uses_store_iterations(self, store, keypair, password):
        store.write_wrapped(keypair, password)
        assert int.from_bytes(store.wrapped_path.read_bytes()[1:5], "big") == TEST_ITERATIONS

    def test_explicit_iterations(self, store, keypair, password):
        store.write_wrapped(keypair, password, iterations=42)
        assert int.from_bytes(store.wrapped_path.read_bytes()[1:5], "big") == 42

    def test_wrong_password(self, store, keypair, password):
        store.write_wrapped(keypair, password)
        with pytest.raises(InvalidPassword):
            store.read_wrapped("wrong password!")

    def test_missing_is_not_initialized(self, store, password):
        with pytest.raises(NotInitialized):
            store.read_wrapped(password)

    def test_delete_is_idempotent(self, store, keypair, password):
        store.write_wrapped(keypair, password)
        store.delete_wrapped()
        store.delete_wrapped()
        assert not store.wrapped_exists()


class TestBackup:

    def test_backup_copies_content(self, store, keypair):
        store.write_plaintext(keypair)
        backup = store.backup_plaintext()
        assert backup.parent == store.key_dir
        assert backup.name.startswith("master.key.backup.")
        assert backup.read_bytes() == store.plaintext_path.read_bytes()

    @skip_on_windows
    def test_backup_mode(self, store, keypair):
        store.write_plaintext(keypair)
        assert stat.S_IMODE(store.backup_plaintext().stat().st_mode) == 0o600

    def test_backups_do_not_collide(self, store, keypair, password):
        store.write_wrapped(keypair, password)
        first = store.backup_wrapped()
        second = store.backup_wrapped()
        assert first != second
        assert len(store.list_backups()) == 2

    def test_missing_source(self, store):
        store.ensure_directory()
        with pytest.raises(BackupFailed):
            store.backup_plaintext()

    def test_copy_failure(self, store, keypair, monkeypatch):
        store.write_plaintext(keypair)

        def broken_copy(src, dst, *args, **kwargs):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(shutil, "copyfile", broken_copy)
        with pytest.raises(BackupFailed):
            store.backup_plaintext()
        assert store.list_backups() == []

    def test_timestamp_format(self):
        stamp = backup_timestamp(datetime(2025, 1, 31, 12, 34, 56, 789012, tzinfo=timezone.utc))
        assert stamp == "2025-01-31T12-34-56-789012Z"
        assert re.fullmatch(r"[0-9TZ\-]+", backup_timestamp())


class TestRemove:

    def test_remove_missing_is_fine(self, store):
        store.remove(store.wrapped_path)

    def test_remove_failure(self, store, keypair, password, monkeypatch):
        store.write_wrapped(keypair, password)

        def broken_unlink(self, *args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(type(store.wrapped_path), "unlink", broken_unlink)
        with pytest.raises(RemoveFailed):
            store.remove(store.wrapped_path)

    def test_plaintext_removal_overwrites(self, store, keypair, monkeypatch):
        store.write_plaintext(keypair)
        calls = []

        from gitfoil.core.keys import keyring_store as module

        real = module.secure_delete
        monkeypatch.setattr(module, "secure_delete", lambda p: calls.append(p) or real(p))
        store.delete_plaintext()
        assert calls == [store.plaintext_path]
        assert not store.plaintext_exists()


def test_repr(git_dir):
    assert "git_foil" in repr(KeyringStore(git_dir))
