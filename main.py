from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from src.config import settings
from src.utils.counter import PersistentCounter
from src.utils.errors import StorageError, InvalidRequestError
from src.utils.ledger import RecordLedger
from src.utils.state_store import DeviceStateStore
from src.routes import patient_routes, sensor_routes
from src.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(title="Vitals Relay")

# Dashboards are served separately and poll this API from the browser
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One store and one ledger for the whole process, shared with the handlers through app.state
app.state.device_store = DeviceStateStore(enforce_seq_order=settings.ENFORCE_SEQ_ORDER)
app.state.ledger = RecordLedger(
    store=app.state.device_store,
    counter=PersistentCounter(settings.counter_path),
    csv_path=settings.ledger_csv_path,
    xlsx_path=settings.mirror_xlsx_path,
)

app.include_router(sensor_routes.router)
app.include_router(patient_routes.router)

@app.exception_handler(InvalidRequestError)
async def handle_invalid_request(request: Request, exc: InvalidRequestError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.exception_handler(RequestValidationError)
async def handle_malformed_body(request: Request, exc: RequestValidationError):
    # The raw input is left out; it may not even be encodable
    errors = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
    logger.warning(f"Malformed body for {request.method} {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content={"detail": errors})

@app.exception_handler(StorageError)
async def handle_storage_error(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT)
