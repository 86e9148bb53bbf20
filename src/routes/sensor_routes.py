from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from src.logger import get_logger
from src.utils.ingestion import normalize_reading
from src.utils.models import IngestAck, SensorReading
from src.utils.state_store import DeviceStateStore

logger = get_logger(__name__)

router = APIRouter(tags=["Sensor Data"])

#-------- Dependencies--------
def get_device_store(request: Request) -> DeviceStateStore:
    """The store is built once in main.py and shared through app.state."""
    return request.app.state.device_store

#-------- Routes--------
@router.post("/sensor-data", response_model=IngestAck)
def receive_sensor_data(reading: SensorReading, store: DeviceStateStore = Depends(get_device_store)):
    """
    Receives a telemetry update from a device and merges it into the device's latest snapshot.
    Fields the device leaves out keep their previous values.
    """
    if not reading.device_id:
        logger.warning("Rejected sensor data without a device_id")
        raise HTTPException(status_code=400, detail="device_id required")

    snapshot = store.upsert(reading.device_id, normalize_reading(reading))
    logger.debug(f"Sensor data: {snapshot.model_dump(exclude_none=True)}")
    return IngestAck(message="Sensor data received")

@router.get("/latest/{device_id}")
def get_latest_sensor_data(device_id: str, store: DeviceStateStore = Depends(get_device_store)) -> Dict[str, Any]:
    """
    Returns the latest readings for a device. A device that has never reported
    gets an empty object rather than an error, so dashboards can poll before it comes online.
    """
    snapshot = store.get(device_id)
    if snapshot is None:
        return {}
    return snapshot.model_dump(exclude_none=True)

@router.get("/devices")
def list_devices(store: DeviceStateStore = Depends(get_device_store)) -> Dict[str, List[str]]:
    """Lists every device that has reported since the server started."""
    return {"devices": store.device_ids()}
