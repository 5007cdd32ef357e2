# api/creatorpay/utils/cache.py
import threading
import time
from typing import Any, Callable, Optional

# process-local; entries carry their own expiry
_store: dict = {}
_lock = threading.Lock()


def _now() -> float:
    return time.time()


def get_json(key: str) -> Optional[Any]:
    with _lock:
        row = _store.get(key)
        if not row:
            return None
        exp, val = row
        if exp and exp < _now():
            _store.pop(key, None)
            return None
        return val


def set_json(key: str, obj: Any, ttl_sec: int):
    with _lock:
        _store[key] = (_now() + ttl_sec, obj)


def cache_json(key: str, ttl_sec: int, fetch_fn: Callable[[], Any]) -> Any:
    val = get_json(key)
    if val is not None:
        return val
    data = fetch_fn()
    set_json(key, data, ttl_sec)
    return data


def clear():
    with _lock:
        _store.clear()
