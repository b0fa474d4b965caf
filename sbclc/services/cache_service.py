"""
Master-Data Query Cache

Thin cache-aside wrapper keyed by ``resource + params`` with explicit
invalidation on writes:
  - Milestone definition lists  (keyed by service type + filter)
  - Role grant sets             (keyed by role code)

Uses Redis when REDIS_URL points at a redis:// server, falls back to a
simple in-memory dict for development/testing.
"""

import json
import logging
import os
import time

logger = logging.getLogger(__name__)

# ── In-memory fallback ───────────────────────────────────────────────────

_memory_store: dict = {}  # key → (value_json, expire_ts)


class _MemoryBackend:
    """Simple dict cache for dev/testing."""

    def get(self, key):
        entry = _memory_store.get(key)
        if entry is None:
            return None
        val, expires = entry
        if expires and time.time() > expires:
            _memory_store.pop(key, None)
            return None
        return val

    def setex(self, key, ttl_seconds, value):
        _memory_store[key] = (value, time.time() + ttl_seconds)

    def delete(self, *keys):
        for k in keys:
            _memory_store.pop(k, None)

    def keys(self, pattern):
        """Simple glob matching for 'prefix*' patterns."""
        if pattern.endswith("*"):
            prefix = pattern[:-1]
            return [k for k in _memory_store if k.startswith(prefix)]
        return [k for k in _memory_store if k == pattern]

    def flushdb(self):
        _memory_store.clear()

    def ping(self):
        return True


# ── Singleton cache backend ──────────────────────────────────────────────

_backend = None


def _get_backend():
    """Lazy-initialise Redis or fall back to in-memory."""
    global _backend
    if _backend is not None:
        return _backend

    redis_url = os.getenv("REDIS_URL")
    if redis_url and redis_url.startswith(("redis://", "rediss://")):
        try:
            import redis as _redis
            _backend = _redis.from_url(redis_url, decode_responses=True)
            _backend.ping()
            logger.info("Cache: using Redis at %s", redis_url.split("@")[-1])
        except Exception as exc:
            logger.warning("Redis unavailable (%s) — falling back to memory cache", exc)
            _backend = _MemoryBackend()
    else:
        _backend = _MemoryBackend()
    return _backend


# ── Default TTLs ─────────────────────────────────────────────────────────

GRANTS_TTL = 300       # 5 minutes
DEFAULT_TTL = 300

_PREFIX = "sbclc:"


# ── Key builders ─────────────────────────────────────────────────────────

def resource_key(resource: str, **params) -> str:
    """Build a stable key: ``sbclc:<resource>:k1=v1:k2=v2`` (params sorted)."""
    parts = [f"{k}={params[k]}" for k in sorted(params) if params[k] is not None]
    suffix = ":".join(parts)
    return f"{_PREFIX}{resource}:{suffix}" if suffix else f"{_PREFIX}{resource}:"


def _grants_key(role_code):
    return resource_key("grants", role=role_code)


# ── Public API ───────────────────────────────────────────────────────────


def get_cached(key, ttl=DEFAULT_TTL, loader=None):
    """Generic cache-aside.  If *loader* is provided, it's called on miss
    and the result is cached."""
    be = _get_backend()
    raw = be.get(key)
    if raw is not None:
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            pass
    if loader is None:
        return None
    value = loader()
    if value is not None:
        be.setex(key, ttl, json.dumps(value))
    return value


def set_cached(key, value, ttl=DEFAULT_TTL):
    """Generic set."""
    _get_backend().setex(key, ttl, json.dumps(value))


def delete_cached(key):
    """Generic delete."""
    _get_backend().delete(key)


def invalidate_resource(resource: str, **params):
    """Drop every cached entry of *resource* whose key starts with *params*.

    With no params all entries for the resource are removed.  Params are
    matched in sorted-key order, same as ``resource_key``.
    """
    be = _get_backend()
    base = resource_key(resource, **params)
    keys = be.keys(base + "*")
    if keys:
        be.delete(*keys)
        logger.debug("Cache invalidated %d key(s) for %s", len(keys), base)


def get_cached_grants(role_code):
    """Return cached ``{module_id: [action]}`` for a role, or None on miss."""
    return get_cached(_grants_key(role_code))


def set_cached_grants(role_code, grants):
    set_cached(_grants_key(role_code), grants, ttl=GRANTS_TTL)


def invalidate_role_cache(role_code):
    """Remove cached grants for a role (after a permission replace)."""
    delete_cached(_grants_key(role_code))


def clear_all():
    """Flush entire cache (use sparingly — mainly for testing)."""
    be = _get_backend()
    if isinstance(be, _MemoryBackend):
        be.flushdb()
        return
    keys = be.keys(_PREFIX + "*")
    if keys:
        be.delete(*keys)


def health_check():
    """Return cache backend status."""
    try:
        be = _get_backend()
        be.ping()
        backend_type = "redis" if not isinstance(be, _MemoryBackend) else "memory"
        return {"status": "ok", "backend": backend_type}
    except Exception as exc:
        return {"status": "error", "detail": str(exc)}
