import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.logger import get_logger
from src.utils.errors import InvalidRequestError
from src.utils.models import TELEMETRY_FIELDS, DeviceSnapshot

logger = get_logger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_older(incoming: Any, stored: Any) -> bool:
    """True only when both sequence numbers are integers and the incoming one is behind."""
    try:
        return int(incoming) < int(stored)
    except (TypeError, ValueError):
        return False


class DeviceStateStore:
    """
    Latest snapshot per device, shared between the ingest and query handlers.

    Each device has its own lock, so a merge into one device never waits on
    another device. The registry lock is only held long enough to look up or
    create a device lock.
    """

    def __init__(self, enforce_seq_order: bool = False):
        self.enforce_seq_order = enforce_seq_order
        self._snapshots: Dict[str, DeviceSnapshot] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, device_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = self._locks[device_id] = threading.Lock()
            return lock

    def upsert(self, device_id: Optional[str], fields: Dict[str, Any]) -> DeviceSnapshot:
        """
        Merges the given canonical fields into the device's snapshot and returns a copy of the result.
        Fields that are missing or None leave the stored value untouched.
        """
        if not device_id or not str(device_id).strip():
            raise InvalidRequestError("device_id required")

        updates = {k: v for k, v in fields.items() if k in TELEMETRY_FIELDS and v is not None}
        ignored = set(fields) - set(TELEMETRY_FIELDS) - {"device_id"}
        if ignored:
            logger.debug(f"Ignoring non-canonical fields for {device_id}: {sorted(ignored)}")
        if not updates.get("timestamp"):
            updates["timestamp"] = _utc_now_iso()

        with self._lock_for(device_id):
            snapshot = self._snapshots.get(device_id)
            if snapshot is None:
                snapshot = DeviceSnapshot(device_id=device_id)
                with self._registry_lock:
                    self._snapshots[device_id] = snapshot
                logger.info(f"First reading from device {device_id}")
            elif (
                self.enforce_seq_order
                and "seq" in updates
                and snapshot.seq is not None
                and _is_older(updates["seq"], snapshot.seq)
            ):
                logger.warning(
                    f"Dropping out-of-order update for {device_id}: seq {updates['seq']} < {snapshot.seq}"
                )
                return snapshot.model_copy(deep=True)

            for name, value in updates.items():
                setattr(snapshot, name, value)
            return snapshot.model_copy(deep=True)

    def get(self, device_id: str) -> Optional[DeviceSnapshot]:
        """Returns a detached copy of the device's snapshot, or None if it has never reported."""
        with self._registry_lock:
            lock = self._locks.get(device_id)
        if lock is None:
            return None
        with lock:
            snapshot = self._snapshots.get(device_id)
            return snapshot.model_copy(deep=True) if snapshot is not None else None

    def device_ids(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._snapshots)
