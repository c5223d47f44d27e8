"""Per-organization mutation lock.

All hierarchy writes for one client must run their read-validate-write
sequence under this lock; writes for different clients proceed in parallel.

- PostgreSQL: session-scoped advisory lock on a dedicated connection,
  independent of db.session, so it survives intermediate flushes/commits.
- Other dialects (SQLite in tests and local use): a process-local
  threading.Lock per key with the same timeout semantics.

Thread-local reentrancy detection raises immediately instead of
deadlocking. The PostgreSQL path unlocks unconditionally in ``finally``
(lock_timeout can fire after the lock is granted, PostgreSQL Bug #17686).
"""

import hashlib
import logging
import struct
import threading
from contextlib import contextmanager
from enum import IntEnum

from sqlalchemy import text

from .errors import LockTimeoutError, OrgChartError

logger = logging.getLogger(__name__)

# Thread-local storage for reentrancy detection
_thread_local = threading.local()

# Process-local locks for dialects without advisory locks
_local_locks: dict[tuple[int, int], threading.Lock] = {}
_local_locks_guard = threading.Lock()


class LockNamespace(IntEnum):
    """Advisory lock namespace identifiers.

    PostgreSQL advisory locks take two int4 keys. The first key is the
    namespace, the second is derived from the client id.
    """
    ORG_HIERARCHY = 1


class ReentrantLockError(OrgChartError):
    """Raised when a thread tries to take an org lock it already holds."""

    code = "lock_reentrant"


def lock_key_from_string(value: str) -> int:
    """Convert a string to a deterministic int32 lock key via BLAKE2b.

    Uses BLAKE2b with 4-byte digest, unpacked as a signed int32 to match
    PostgreSQL's int4 parameter type.
    """
    digest = hashlib.blake2b(value.encode("utf-8"), digest_size=4).digest()
    return struct.unpack(">i", digest)[0]


def _get_held_locks() -> set:
    """Get the set of currently held lock keys for this thread."""
    if not hasattr(_thread_local, "held_locks"):
        _thread_local.held_locks = set()
    return _thread_local.held_locks


def _get_local_lock(lock_key: tuple[int, int]) -> threading.Lock:
    with _local_locks_guard:
        lock = _local_locks.get(lock_key)
        if lock is None:
            lock = threading.Lock()
            _local_locks[lock_key] = lock
        return lock


@contextmanager
def _local_lock(lock_key: tuple[int, int], client_id: str, timeout: float):
    lock = _get_local_lock(lock_key)
    if not lock.acquire(timeout=timeout):
        raise LockTimeoutError(
            f"Timed out after {timeout}s waiting for the hierarchy lock "
            f"of client '{client_id}'"
        )
    try:
        yield
    finally:
        lock.release()


@contextmanager
def _pg_advisory_lock(engine, lock_key: tuple[int, int], client_id: str, timeout: float):
    conn = engine.connect()
    try:
        # SET does not support bound parameters in PostgreSQL.
        # Safe because timeout_ms is always an int.
        timeout_ms = int(timeout * 1000)
        if timeout_ms < 0:
            raise ValueError(f"Invalid lock timeout: {timeout_ms}")
        conn.execute(text(f"SET lock_timeout = '{timeout_ms}ms'"))

        try:
            conn.execute(
                text("SELECT pg_advisory_lock(:ns, :id)"),
                {"ns": lock_key[0], "id": lock_key[1]},
            )
        except Exception as e:
            try:
                conn.execute(
                    text("SELECT pg_advisory_unlock(:ns, :id)"),
                    {"ns": lock_key[0], "id": lock_key[1]},
                )
            except Exception as unlock_error:
                logger.debug(f"Advisory unlock after failed acquire: {unlock_error}")
            conn.close()
            raise LockTimeoutError(
                f"Failed to acquire the hierarchy lock of client '{client_id}' "
                f"within {timeout}s: {e}"
            ) from e

        try:
            yield
        finally:
            try:
                conn.execute(
                    text("SELECT pg_advisory_unlock(:ns, :id)"),
                    {"ns": lock_key[0], "id": lock_key[1]},
                )
            except Exception as e:
                logger.warning(
                    f"Advisory lock unlock failed (non-fatal): client_id={client_id}: {e}"
                )
            conn.close()
    except LockTimeoutError:
        raise
    except Exception:
        conn.close()
        raise


@contextmanager
def org_lock(client_id: str, timeout: float = 15.0):
    """Serialise hierarchy mutations for one client.

    Args:
        client_id: Client whose reporting tree is about to be mutated
        timeout: Maximum seconds to wait for the lock

    Raises:
        LockTimeoutError: If the lock cannot be acquired within timeout.
        ReentrantLockError: If this thread already holds the same lock.
    """
    lock_key = (int(LockNamespace.ORG_HIERARCHY), lock_key_from_string(client_id))

    held = _get_held_locks()
    if lock_key in held:
        raise ReentrantLockError(
            f"Reentrant hierarchy lock detected for client '{client_id}'. "
            "This would deadlock."
        )

    from ..database import db
    engine = db.engine

    if engine.dialect.name == "postgresql":
        guard = _pg_advisory_lock(engine, lock_key, client_id, timeout)
    else:
        guard = _local_lock(lock_key, client_id, timeout)

    with guard:
        held.add(lock_key)
        try:
            yield
        finally:
            held.discard(lock_key)
