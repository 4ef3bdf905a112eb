"""Tests for the pluggable store backends.

Covers:
- In-memory get / put / delete and copy semantics.
- Lazy expiry and explicit sweep.
- Compare-and-swap (present, absent, conflicting).
- Redis backend commands against a mocked client.
- Backend factory selection.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import redis

import app.core.redis as redis_pool
from app.services.backends import MemoryBackend, RedisBackend, build_backend


# ── Memory backend ──────────────────────────────────────────


class TestMemoryBackend:
    """Process-local backend behaviour."""

    def test_put_then_get(self, backend: MemoryBackend):
        """Stored values come back equal."""
        backend.put("k", {"a": 1})
        assert backend.get("k") == {"a": 1}

    def test_missing_key(self, backend: MemoryBackend):
        """Unknown keys read as None."""
        assert backend.get("nope") is None

    def test_get_returns_copy(self, backend: MemoryBackend):
        """Mutating a returned value does not change the store."""
        backend.put("k", {"a": [1]})
        value = backend.get("k")
        value["a"].append(2)
        assert backend.get("k") == {"a": [1]}

    def test_delete(self, backend: MemoryBackend):
        """Delete reports whether the key existed."""
        backend.put("k", 1)
        assert backend.delete("k") is True
        assert backend.delete("k") is False
        assert backend.get("k") is None

    def test_keys_by_prefix(self, backend: MemoryBackend):
        """``keys`` filters on prefix."""
        backend.put("a:1", 1)
        backend.put("a:2", 2)
        backend.put("b:1", 3)
        assert sorted(backend.keys("a:")) == ["a:1", "a:2"]

    def test_ttl_expiry_is_lazy(self, backend: MemoryBackend, clock):
        """Expired keys read as None once their TTL has passed."""
        backend.put("k", 1, ttl=60)
        clock.advance(seconds=59)
        assert backend.get("k") == 1
        clock.advance(seconds=1)
        assert backend.get("k") is None

    def test_expired_keys_hidden_from_listing(self, backend: MemoryBackend, clock):
        """``keys`` never lists expired entries."""
        backend.put("a:1", 1, ttl=10)
        backend.put("a:2", 2)
        clock.advance(seconds=11)
        assert backend.keys("a:") == ["a:2"]

    def test_sweep_removes_only_expired(self, backend: MemoryBackend, clock):
        """Sweep drops expired entries under the prefix only."""
        backend.put("a:old", 1, ttl=10)
        backend.put("a:new", 2, ttl=100)
        backend.put("b:old", 3, ttl=10)
        clock.advance(seconds=20)
        assert backend.sweep("a:") == 1
        assert backend.get("a:new") == 2
        # b:old is expired but outside the swept prefix
        assert backend.sweep("b:") == 1


class TestMemoryCompareAndSwap:
    """Atomic conditional writes."""

    def test_swap_when_absent(self, backend: MemoryBackend):
        """``expected=None`` succeeds only if the key is missing."""
        assert backend.compare_and_swap("k", None, [1]) is True
        assert backend.compare_and_swap("k", None, [2]) is False
        assert backend.get("k") == [1]

    def test_swap_when_matching(self, backend: MemoryBackend):
        """Write happens when the current value matches."""
        backend.put("k", {"n": 1})
        assert backend.compare_and_swap("k", {"n": 1}, {"n": 2}) is True
        assert backend.get("k") == {"n": 2}

    def test_swap_rejected_on_conflict(self, backend: MemoryBackend):
        """Stale expectations do not overwrite newer data."""
        backend.put("k", {"n": 2})
        assert backend.compare_and_swap("k", {"n": 1}, {"n": 3}) is False
        assert backend.get("k") == {"n": 2}

    def test_key_order_irrelevant(self, backend: MemoryBackend):
        """Dict comparison is by value, not insertion order."""
        backend.put("k", {"a": 1, "b": 2})
        assert backend.compare_and_swap("k", {"b": 2, "a": 1}, {"a": 0}) is True

    def test_expired_counts_as_absent(self, backend: MemoryBackend, clock):
        """An expired key behaves like a missing one."""
        backend.put("k", 1, ttl=5)
        clock.advance(seconds=6)
        assert backend.compare_and_swap("k", None, 2) is True


# ── Redis backend ───────────────────────────────────────────


@pytest.fixture
def mock_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def redis_backend(mock_client) -> RedisBackend:
    return RedisBackend(client_factory=lambda: mock_client)


class TestRedisBackend:
    """Redis commands issued by ``RedisBackend``."""

    def test_get_decodes_json(self, redis_backend, mock_client):
        """GET is namespaced and JSON-decoded."""
        mock_client.get.return_value = json.dumps({"a": 1})
        assert redis_backend.get("k") == {"a": 1}
        mock_client.get.assert_called_once_with("liveness:k")
        mock_client.close.assert_called_once()

    def test_get_miss(self, redis_backend, mock_client):
        """A nil reply reads as None."""
        mock_client.get.return_value = None
        assert redis_backend.get("k") is None

    def test_put_with_ttl_uses_setex(self, redis_backend, mock_client):
        """TTL writes use SETEX."""
        redis_backend.put("k", {"a": 1}, ttl=60)
        mock_client.setex.assert_called_once_with("liveness:k", 60, '{"a":1}')

    def test_put_without_ttl_uses_set(self, redis_backend, mock_client):
        """Non-expiring writes use SET."""
        redis_backend.put("k", [1, 2])
        mock_client.set.assert_called_once_with("liveness:k", "[1,2]")

    def test_delete(self, redis_backend, mock_client):
        """DEL reply is mapped to a bool."""
        mock_client.delete.return_value = 1
        assert redis_backend.delete("k") is True

    def test_keys_strip_namespace(self, redis_backend, mock_client):
        """SCAN results come back without the namespace."""
        mock_client.scan_iter.return_value = iter(
            ["liveness:status:a", "liveness:status:b"]
        )
        assert redis_backend.keys("status:") == ["status:a", "status:b"]
        mock_client.scan_iter.assert_called_once_with(match="liveness:status:*")

    def test_sweep_is_noop(self, redis_backend, mock_client):
        """Redis expires keys itself."""
        assert redis_backend.sweep("x:") == 0
        mock_client.assert_not_called()

    def test_errors_propagate(self, redis_backend, mock_client):
        """Connection errors are not swallowed."""
        mock_client.get.side_effect = redis.ConnectionError("down")
        with pytest.raises(redis.ConnectionError):
            redis_backend.get("k")
        mock_client.close.assert_called_once()

    def test_cas_success(self, redis_backend, mock_client):
        """Matching value → MULTI / SET / EXEC."""
        pipe = mock_client.pipeline.return_value.__enter__.return_value
        pipe.get.return_value = '{"n":1}'
        assert redis_backend.compare_and_swap("k", {"n": 1}, {"n": 2}) is True
        pipe.watch.assert_called_once_with("liveness:k")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once_with("liveness:k", '{"n":2}')
        pipe.execute.assert_called_once()

    def test_cas_mismatch(self, redis_backend, mock_client):
        """Different current value → no write."""
        pipe = mock_client.pipeline.return_value.__enter__.return_value
        pipe.get.return_value = '{"n":5}'
        assert redis_backend.compare_and_swap("k", {"n": 1}, {"n": 2}) is False
        pipe.execute.assert_not_called()

    def test_cas_watch_error(self, redis_backend, mock_client):
        """A concurrent write during MULTI is reported as a lost race."""
        pipe = mock_client.pipeline.return_value.__enter__.return_value
        pipe.get.return_value = None
        pipe.execute.side_effect = redis.WatchError()
        assert redis_backend.compare_and_swap("k", None, 1, ttl=30) is False
        pipe.setex.assert_called_once_with("liveness:k", 30, "1")

    def test_ping_failure(self, redis_backend, mock_client):
        """Ping reports False instead of raising."""
        mock_client.ping.side_effect = redis.ConnectionError("down")
        assert redis_backend.ping() is False

    def test_close_leaves_injected_client_alone(self, redis_backend, monkeypatch):
        """Only a backend that opened the shared pool tears it down."""
        closer = MagicMock()
        monkeypatch.setattr(redis_pool, "close_redis_pool", closer)
        redis_backend.close()
        closer.assert_not_called()

    def test_close_disconnects_shared_pool(self, monkeypatch):
        pool = MagicMock()
        monkeypatch.setattr(redis_pool, "_pool", pool)
        RedisBackend().close()
        pool.disconnect.assert_called_once()

        assert redis_pool._pool is None


# ── Factory ─────────────────────────────────────────────────


class TestBuildBackend:
    """``STORE_BACKEND`` selection."""

    def test_memory(self):
        assert isinstance(build_backend("memory"), MemoryBackend)

    def test_redis(self):
        assert isinstance(build_backend("redis"), RedisBackend)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown STORE_BACKEND"):
            build_backend("etcd")
