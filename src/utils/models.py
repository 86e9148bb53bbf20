from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Dict, Optional, Union

# A single sensor reading as a device sends it: a number, or text such as "120/80"
Reading = Union[int, float, str]

# Telemetry fields the store understands, in ledger order
TELEMETRY_FIELDS = (
    "timestamp", "seq", "heartRate", "spo2", "temperature", "ecg",
    "glucose", "bp_sys", "bp_dia", "bp", "gsr", "spiro",
)

# Ledger column -> snapshot field, shared by the CSV ledger and the Excel mirror
SNAPSHOT_COLUMNS = {
    "Timestamp": "timestamp",
    "Seq": "seq",
    "HeartRate": "heartRate",
    "SpO2": "spo2",
    "Temperature": "temperature",
    "ECG": "ecg",
    "Sugar_Glucose": "glucose",
    "BP_SYS": "bp_sys",
    "BP_DIA": "bp_dia",
    "BP": "bp",
    "GSR": "gsr",
    "LungCapacity": "spiro",
}
LEDGER_COLUMNS = ["PatientNumber", "Name", "Age", "Gender", "DeviceID", *SNAPSHOT_COLUMNS]


def _as_text(v):
    # Some boards send ids as bare numbers
    return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v


def _as_device_id(v):
    v = _as_text(v)
    return v.strip() if isinstance(v, str) else v


def _encodable(v):
    """Rejects text the UTF-8 ledger could not store, such as lone surrogates."""
    if isinstance(v, str):
        try:
            v.encode("utf-8")
        except UnicodeEncodeError:
            raise ValueError("text is not valid UTF-8")
    return v


class SensorReading(BaseModel):
    """Telemetry payload posted by a device. Only `device_id` is required."""
    model_config = ConfigDict(extra="ignore")

    device_id: Optional[str] = None
    timestamp: Optional[str] = None
    seq: Optional[Reading] = None
    heartRate: Optional[Reading] = None
    spo2: Optional[Reading] = None
    temperature: Optional[Reading] = None
    ecg: Optional[Reading] = None
    glucose: Optional[Reading] = None
    bp_sys: Optional[Reading] = None
    bp_dia: Optional[Reading] = None
    bp: Optional[Reading] = None
    gsr: Optional[Reading] = None
    spiro: Optional[Reading] = None

    # Older firmware names
    hr: Optional[Reading] = None
    sugar: Optional[Reading] = None

    @field_validator("device_id", mode="before")
    @classmethod
    def _normalize_device_id(cls, v):
        return _as_device_id(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _numbers_as_text(cls, v):
        return _as_text(v)

    @field_validator("*")
    @classmethod
    def _utf8_only(cls, v):
        return _encodable(v)


class DeviceSnapshot(BaseModel):
    """Latest known readings for one device. A field left as None has never been reported."""
    device_id: str
    timestamp: Optional[str] = None
    seq: Optional[Reading] = None
    heartRate: Optional[Reading] = None
    spo2: Optional[Reading] = None
    temperature: Optional[Reading] = None
    ecg: Optional[Reading] = None
    glucose: Optional[Reading] = None
    bp_sys: Optional[Reading] = None
    bp_dia: Optional[Reading] = None
    bp: Optional[Reading] = None
    gsr: Optional[Reading] = None
    spiro: Optional[Reading] = None


class PatientSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    age: Optional[Union[int, str]] = None
    gender: Optional[str] = None
    device_id: Optional[str] = None

    @field_validator("device_id", mode="before")
    @classmethod
    def _normalize_device_id(cls, v):
        return _as_device_id(v)

    @field_validator("name", "gender", mode="before")
    @classmethod
    def _numbers_as_text(cls, v):
        return _as_text(v)

    @field_validator("*")
    @classmethod
    def _utf8_only(cls, v):
        return _encodable(v)


class PatientRecord(BaseModel):
    """A saved encounter. Never changed once it has been appended to the ledger."""
    model_config = ConfigDict(frozen=True)

    patientNumber: int
    name: str
    age: str
    gender: str
    device_id: str
    snapshot: DeviceSnapshot

    def to_row(self) -> Dict[str, Any]:
        row = {
            "PatientNumber": self.patientNumber,
            "Name": self.name,
            "Age": self.age,
            "Gender": self.gender,
            "DeviceID": self.device_id,
        }
        for column, field in SNAPSHOT_COLUMNS.items():
            value = getattr(self.snapshot, field)
            row[column] = "" if value is None else value
        return row


class IngestAck(BaseModel):
    message: str


class SaveResponse(BaseModel):
    message: str
    patientNumber: int
