import os
import tempfile
import threading
from pathlib import Path

import pandas as pd

from src.logger import get_logger
from src.utils.counter import PersistentCounter
from src.utils.errors import StorageError, InvalidRequestError
from src.utils.models import LEDGER_COLUMNS, DeviceSnapshot, PatientRecord, PatientSubmission
from src.utils.state_store import DeviceStateStore

logger = get_logger(__name__)

MIRROR_SHEET = "Patients"


def _required(value, field: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise InvalidRequestError(f"{field} required")
    return text


class RecordLedger:
    """
    Saves patient encounters to the CSV ledger and its Excel mirror.

    The CSV file is the record of truth: if it cannot be written the save
    fails. The Excel workbook is a convenience copy for clinic staff and is
    allowed to fall behind; its failures are only logged.
    """

    def __init__(self, store: DeviceStateStore, counter: PersistentCounter, csv_path: Path, xlsx_path: Path):
        self.store = store
        self.counter = counter
        self.csv_path = Path(csv_path)
        self.xlsx_path = Path(xlsx_path)
        # Held from number assignment until both sinks are written, so rows land in number order
        self._lock = threading.Lock()

    def save(self, submission: PatientSubmission) -> PatientRecord:
        """
        Assigns the next patient number and appends the encounter to both sinks.
        Raises InvalidRequestError for a bad submission and StorageError when the
        counter or the CSV ledger cannot be written.
        """
        device_id = _required(submission.device_id, "device_id")
        name = _required(submission.name, "name")
        age = _required(submission.age, "age")
        gender = "" if submission.gender is None else str(submission.gender).strip()

        # A device that never reported still gets a record, just with unknown vitals
        snapshot = self.store.get(device_id) or DeviceSnapshot(device_id=device_id)

        with self._lock:
            patient_number = self.counter.next()
            record = PatientRecord(
                patientNumber=patient_number,
                name=name,
                age=age,
                gender=gender,
                device_id=device_id,
                snapshot=snapshot,
            )
            self._append_csv(record)
            self._append_mirror(record)

        logger.info(f"Saved patient #{patient_number} ({name}) with vitals from {device_id}")
        return record

    def _append_csv(self, record: PatientRecord) -> None:
        row = pd.DataFrame([record.to_row()], columns=LEDGER_COLUMNS)
        try:
            self.csv_path.parent.mkdir(parents=True, exist_ok=True)
            write_header = not self.csv_path.exists() or self.csv_path.stat().st_size == 0
            row.to_csv(
                self.csv_path,
                mode="a",
                header=write_header,
                index=False,
                encoding="utf-8",
                lineterminator="\n",
            )
        except (OSError, ValueError) as e:
            # The number is already committed; it stays consumed without a row
            logger.error(f"Failed to append patient #{record.patientNumber} to {self.csv_path}: {e}")
            raise StorageError(f"Could not write patient ledger: {e}") from e

    def _append_mirror(self, record: PatientRecord) -> None:
        try:
            row = pd.DataFrame([record.to_row()], columns=LEDGER_COLUMNS)
            if self.xlsx_path.exists():
                existing = pd.read_excel(self.xlsx_path, sheet_name=0, dtype=object)
                frame = pd.concat([existing, row], ignore_index=True)
            else:
                frame = row
            self._rewrite_mirror(frame.reindex(columns=LEDGER_COLUMNS))
        except Exception as e:
            logger.exception(f"Excel mirror update failed for patient #{record.patientNumber}: {e}")

    def _rewrite_mirror(self, frame: pd.DataFrame) -> None:
        self.xlsx_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.xlsx_path.parent, prefix=".mirror.", suffix=".xlsx")
        os.close(fd)
        try:
            frame.to_excel(tmp_name, sheet_name=MIRROR_SHEET, index=False, engine="openpyxl")
            os.replace(tmp_name, self.xlsx_path)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
