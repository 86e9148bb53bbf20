import json
import pytest
from unittest.mock import patch

from src.utils.counter import PersistentCounter

def test_submit_after_ingestion(client, alice, read_csv_ledger):
    """
    Ingest two partial updates, save a patient, and check the saved row carries the merged vitals.
    """
    client.post("/sensor-data", json={"device_id": "d1", "heartRate": 72})
    client.post("/sensor-data", json={"device_id": "d1", "temperature": 36.6})

    response = client.post("/submit", json=alice)

    assert response.status_code == 200
    assert response.json() == {"message": "Patient saved", "patientNumber": 1}
    row = read_csv_ledger().iloc[0]
    assert row["HeartRate"] == "72"
    assert row["Temperature"] == "36.6"

def test_patient_numbers_increase(client, alice):
    numbers = [client.post("/submit", json=alice).json()["patientNumber"] for _ in range(3)]
    assert numbers == [1, 2, 3]

@pytest.mark.parametrize("missing", ["device_id", "name", "age"])
def test_submit_validation_failure(client, alice, ledger, missing):
    payload = {k: v for k, v in alice.items() if k != missing}
    response = client.post("/submit", json=payload)

    assert response.status_code == 400
    assert missing in response.json()["detail"]
    assert ledger.counter.current == 0

def test_submit_storage_failure(client, alice):
    with patch.object(PersistentCounter, "_persist", side_effect=OSError("disk full")):
        response = client.post("/submit", json=alice)

    assert response.status_code == 500
    assert "counter" in response.json()["detail"]

def test_submit_ledger_failure(client, alice, data_dir, ledger):
    (data_dir / "patient_data.csv").mkdir(parents=True)

    response = client.post("/submit", json=alice)

    assert response.status_code == 500
    assert "ledger" in response.json()["detail"]
    # The number is consumed even though no row was written
    assert ledger.counter.current == 1

def test_ingestion_is_not_blocked_by_a_save_in_progress(client, ledger):
    # Hold the save lock as if a slow save were running
    with ledger._lock:
        assert client.post("/sensor-data", json={"device_id": "d1", "heartRate": 72}).status_code == 200
        assert client.get("/latest/d1").json()["heartRate"] == 72

def test_padded_device_id_keeps_its_vitals(client, alice, read_csv_ledger):
    client.post("/sensor-data", json={"device_id": " d1 ", "heartRate": 72})

    assert client.get("/devices").json() == {"devices": ["d1"]}
    response = client.post("/submit", json={**alice, "device_id": " d1"})

    assert response.status_code == 200
    row = read_csv_ledger().iloc[0]
    assert row["DeviceID"] == "d1"
    assert row["HeartRate"] == "72"

@pytest.mark.parametrize("field", ["name", "gender", "device_id"])
def test_text_that_cannot_be_stored_is_rejected(client, alice, ledger, data_dir, field):
    # json.dumps escapes the lone surrogate, so the body itself is valid JSON
    body = json.dumps({**alice, field: "Al\ud800ice"})
    response = client.post("/submit", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert "detail" in response.json()
    assert ledger.counter.current == 0
    assert not (data_dir / "patient_data.csv").exists()

def test_sensor_text_that_cannot_be_stored_is_rejected(client, device_store):
    body = json.dumps({"device_id": "d1", "bp": "120\udc80/80"})
    response = client.post("/sensor-data", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert device_store.device_ids() == []
