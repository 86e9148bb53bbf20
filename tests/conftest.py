import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import pytest
import pandas as pd
import requests
from fastapi.testclient import TestClient

# Import your FastAPI app
from main import app
from src.utils.counter import PersistentCounter
from src.utils.ledger import RecordLedger
from src.utils.state_store import DeviceStateStore

# ----------------------------- Services --------------------------------------
@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Per-test directory for the ledger, the mirror and the counter file."""
    return tmp_path / "data"

@pytest.fixture
def device_store() -> DeviceStateStore:
    return DeviceStateStore()

@pytest.fixture
def counter(data_dir) -> PersistentCounter:
    return PersistentCounter(data_dir / "patient_counter.json")

@pytest.fixture
def make_ledger(device_store, data_dir) -> Callable[..., RecordLedger]:
    """Builds a ledger over the test data dir. Call it again to simulate a process restart."""
    def _make(store: Optional[DeviceStateStore] = None) -> RecordLedger:
        return RecordLedger(
            store=store or device_store,
            counter=PersistentCounter(data_dir / "patient_counter.json"),
            csv_path=data_dir / "patient_data.csv",
            xlsx_path=data_dir / "patient_data.xlsx",
        )
    return _make

@pytest.fixture
def ledger(make_ledger) -> RecordLedger:
    return make_ledger()

# ----------------------------- Core client ----------------------------------
@pytest.fixture
def client(monkeypatch, device_store, ledger) -> TestClient:
    """Shared FastAPI TestClient wired to the per-test store and ledger."""
    monkeypatch.setattr(app.state, "device_store", device_store)
    monkeypatch.setattr(app.state, "ledger", ledger)
    return TestClient(app)

# ----------------------------- Ledger readers --------------------------------
@pytest.fixture
def read_csv_ledger(data_dir) -> Callable[[], pd.DataFrame]:
    def _read() -> pd.DataFrame:
        return pd.read_csv(data_dir / "patient_data.csv", dtype=str, keep_default_na=False)
    return _read

@pytest.fixture
def read_mirror(data_dir) -> Callable[[], pd.DataFrame]:
    def _read() -> pd.DataFrame:
        return pd.read_excel(data_dir / "patient_data.xlsx", dtype=object)
    return _read

# ----------------------------- Payloads --------------------------------------
@pytest.fixture
def alice() -> Dict[str, Any]:
    return {"name": "Alice", "age": "30", "gender": "F", "device_id": "d1"}

# ----------------------------- HTTP response shim ----------------------------
class _Resp:
    def __init__(self, status_code: int, json_obj: Dict[str, Any]):
        self.status_code = status_code
        self._json = json_obj
        self.text = json.dumps(json_obj)
    def json(self) -> Dict[str, Any]: return self._json
    def raise_for_status(self):
        if not (200 <= self.status_code < 300):
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}", response=self)
@pytest.fixture
def make_response() -> Callable[[int, Dict[str, Any]], _Resp]:
    def _make(status: int, body: Dict[str, Any]) -> _Resp: return _Resp(status, body)
    return _make
