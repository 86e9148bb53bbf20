from fastapi import APIRouter, Depends, Request

from src.logger import get_logger
from src.utils.ledger import RecordLedger
from src.utils.models import PatientSubmission, SaveResponse

logger = get_logger(__name__)

router = APIRouter(tags=["Patients"])

def get_record_ledger(request: Request) -> RecordLedger:
    return request.app.state.ledger

@router.post("/submit", response_model=SaveResponse)
def submit_patient(submission: PatientSubmission, ledger: RecordLedger = Depends(get_record_ledger)):
    """
    Saves the patient's details together with the current vitals of their device.
    InvalidRequestError and StorageError are turned into 400 / 500 by the handlers in main.py.
    """
    logger.info(f"Save requested for device {submission.device_id}")
    record = ledger.save(submission)
    return SaveResponse(message="Patient saved", patientNumber=record.patientNumber)
