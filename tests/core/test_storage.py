"""Unit tests for core.storage: backends and PersistenceGateway."""

import errno
import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from plotter.core.storage import (
    FileBackend,
    MemoryBackend,
    PersistenceGateway,
    RedisBackend,
    StorageQuotaExceeded,
    StorageUnavailable,
    make_backend,
    storage_keys,
)


class BrokenBackend:
    """Every operation fails as if storage were disabled."""

    def get(self, key: str) -> str | None:
        raise StorageUnavailable("disabled")

    def set(self, key: str, value: str) -> None:
        raise StorageUnavailable("disabled")

    def delete(self, key: str) -> None:
        raise StorageUnavailable("disabled")


class TestStorageKeys:
    def test_default_prefix(self) -> None:
        keys = storage_keys("plotter_")
        assert keys == {
            "PROJECT": "plotter_current_project",
            "CODE": "plotter_code",
            "VIEWPORT": "plotter_viewport",
            "PROJECT_NAME": "plotter_project_name",
        }


class TestMemoryBackend:
    def test_set_get_delete(self) -> None:
        b = MemoryBackend()
        b.set("k", "v")
        assert b.get("k") == "v"
        b.delete("k")
        b.delete("k")
        assert b.get("k") is None

    def test_quota(self) -> None:
        b = MemoryBackend(quota_bytes=10)
        b.set("a", "12345")
        with pytest.raises(StorageQuotaExceeded):
            b.set("b", "123456")
        b.set("a", "1234567890")
        assert b.get("a") == "1234567890"


class TestFileBackend:
    def test_round_trip_utf8(self, tmp_path: Path) -> None:
        b = FileBackend(tmp_path / "store")
        b.set("plotter_code", '"ü ✓"')
        assert b.get("plotter_code") == '"ü ✓"'
        assert (tmp_path / "store" / "plotter_code.json").exists()
        b.delete("plotter_code")
        b.delete("plotter_code")
        assert b.get("plotter_code") is None

    def test_quota(self, tmp_path: Path) -> None:
        b = FileBackend(tmp_path, quota_bytes=8)
        b.set("a", "1234")
        with pytest.raises(StorageQuotaExceeded):
            b.set("b", "123456")
        assert b.get("b") is None

    def test_rejects_unsafe_keys(self, tmp_path: Path) -> None:
        b = FileBackend(tmp_path)
        with pytest.raises(ValueError):
            b.set("../escape", "x")

    def test_disk_full_maps_to_quota(self, tmp_path: Path) -> None:
        b = FileBackend(tmp_path)
        with patch("plotter.core.storage.backends.os.replace") as replace:
            replace.side_effect = OSError(errno.ENOSPC, "No space left on device")
            with pytest.raises(StorageQuotaExceeded):
                b.set("k", "v")
        assert list(tmp_path.glob(".k.*")) == []


class TestRedisBackend:
    def test_uses_client(self) -> None:
        client = MagicMock()
        client.get.return_value = "v"
        b = RedisBackend(client)
        b.set("k", "v")
        assert b.get("k") == "v"
        b.delete("k")
        client.set.assert_called_once_with("k", "v")
        client.delete.assert_called_once_with("k")

    def test_oom_maps_to_quota(self) -> None:
        client = MagicMock()
        client.set.side_effect = Exception("OOM command not allowed when used memory > 'maxmemory'.")
        with pytest.raises(StorageQuotaExceeded):
            RedisBackend(client).set("k", "v")

    def test_no_client_is_unavailable(self) -> None:
        with patch("plotter.core.storage.backends.get_redis", return_value=None):
            with pytest.raises(StorageUnavailable):
                RedisBackend().get("k")


class TestMakeBackend:
    @pytest.mark.parametrize(
        "kind,cls",
        [("memory", MemoryBackend), ("file", FileBackend), ("redis", RedisBackend)],
    )
    def test_selects_by_setting(self, kind: str, cls: type) -> None:
        with patch("plotter.core.storage.backends.settings") as mock_settings:
            mock_settings.STORAGE_BACKEND = kind
            mock_settings.STORAGE_DIR = ".plotter-test"
            mock_settings.STORAGE_QUOTA_BYTES = 1024
            assert isinstance(make_backend(), cls)


class TestPersistenceGateway:
    def test_save_and_load_json(self, gateway: PersistenceGateway, backend: MemoryBackend) -> None:
        value: dict[str, Any] = {"code": "draw.text('日本')", "n": 1}
        assert gateway.save("plotter_x", value)
        assert json.loads(backend.get("plotter_x")) == value
        assert "日本" in backend.get("plotter_x")
        assert gateway.load("plotter_x") == value

    def test_load_missing(self, gateway: PersistenceGateway) -> None:
        assert gateway.load("plotter_missing") is None

    def test_load_corrupt_returns_none(self, gateway: PersistenceGateway, backend: MemoryBackend) -> None:
        backend.set("plotter_bad", "{not json")
        assert gateway.load("plotter_bad") is None

    def test_unavailable_store(self) -> None:
        gateway = PersistenceGateway(BrokenBackend())
        assert gateway.is_available() is False
        assert gateway.save("plotter_x", 1) is False
        assert gateway.load("plotter_x") is None
        assert gateway.clear() is False

    def test_probe_leaves_no_key(self, gateway: PersistenceGateway, backend: MemoryBackend) -> None:
        assert gateway.is_available()
        assert backend.get("plotter_storage_probe") is None

    def test_unencodable_value(self, gateway: PersistenceGateway) -> None:
        assert gateway.save("plotter_x", {"bad": object()}) is False

    def test_quota_clears_managed_keys_and_retries(self) -> None:
        backend = MemoryBackend(quota_bytes=200)
        gateway = PersistenceGateway(backend, key_prefix="plotter_")
        assert gateway.save(gateway.keys["CODE"], "x" * 150)
        assert gateway.save(gateway.keys["PROJECT"], "y" * 100)
        assert backend.get(gateway.keys["CODE"]) is None
        assert gateway.load(gateway.keys["PROJECT"]) == "y" * 100

    def test_quota_retry_fails(self) -> None:
        backend = MemoryBackend(quota_bytes=50)
        gateway = PersistenceGateway(backend)
        assert gateway.save(gateway.keys["PROJECT"], "z" * 100) is False
        assert backend.get(gateway.keys["PROJECT"]) is None

    def test_clear_is_idempotent(self, gateway: PersistenceGateway, backend: MemoryBackend) -> None:
        for key in gateway.managed_keys:
            gateway.save(key, "v")
        backend.set("unrelated", "keep")
        assert gateway.clear()
        assert gateway.clear()
        assert all(backend.get(k) is None for k in gateway.managed_keys)
        assert backend.get("unrelated") == "keep"

    def test_storage_size(self, gateway: PersistenceGateway) -> None:
        assert gateway.storage_size() == 0
        gateway.save(gateway.keys["CODE"], "ü")
        assert gateway.storage_size() == len('"ü"'.encode("utf-8"))
