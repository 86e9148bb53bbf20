import requests
import json
import time
import argparse
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from src.config import settings
from src.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DEVICE = "esp32-001"

# The server never retries on a device's behalf, so the simulated device re-sends on its own
@retry(
    stop=stop_after_attempt(3),
    wait=wait_fixed(1),
    retry=retry_if_exception_type(requests.exceptions.RequestException),
    reraise=True
)
def send_reading(endpoint_url: str, record: dict) -> requests.Response:
    response = requests.post(endpoint_url, json=record, timeout=5)
    response.raise_for_status()
    return response

def run_simulation(file_path: str, endpoint_url: str, device_id: str = DEFAULT_DEVICE, interval: float = 1.0) -> int:
    """
    Reads sample telemetry from a file and sends it to the ingest endpoint the way a device would.
    Returns the number of records the server accepted.
    """
    try:
        # Open the JSON file and load the sample telemetry
        with open(file_path, 'r') as f:
            sample_data = json.load(f)
    except FileNotFoundError:
        logger.error(f"Error: The file '{file_path}' was not found.")
        return 0
    except json.JSONDecodeError:
        logger.error(f"Error: Could not decode JSON from '{file_path}'.")
        return 0

    logger.info(f"--- Starting data simulation for {device_id} ---")
    logger.info(f"Target endpoint: {endpoint_url}\n")

    sent = 0
    for i, record in enumerate(sample_data):
        record.setdefault("device_id", device_id)
        record.setdefault("seq", i + 1)
        try:
            logger.info(f"Sending record {i+1}: {record}")
            response = send_reading(endpoint_url, record)
            logger.info(f"-> Server response: {response.status_code} - {response.json()}")
            sent += 1

        # Give up on this record once the retries are exhausted
        except requests.exceptions.RequestException as e:
            logger.error(f"!! Failed to send data for record {i+1}: {e}")

        logger.info("-" * 20)

        # Devices report at roughly 1Hz
        if interval:
            time.sleep(interval)

    logger.info("--- Simulation finished ---")
    return sent


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate a device streaming vitals to the relay server.")

    # Add the --simulate flag to the parser
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Run the script in simulation mode."
    )
    parser.add_argument("--device-id", default=DEFAULT_DEVICE, help="device_id to report as.")
    parser.add_argument("--file", default="tools/sample_telemetry.json", help="JSON list of telemetry records.")
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between records.")

    # Parse the arguments
    args = parser.parse_args()

    # If the --simulate flag is used, run the simulation
    if args.simulate:
        app_endpoint = f"http://127.0.0.1:{settings.PORT}/sensor-data"
        run_simulation(args.file, app_endpoint, device_id=args.device_id, interval=args.interval)
    else:
        logger.info("To run the simulation, use the --simulate flag.")
        logger.info("Example: python -m tools.simulate_data --simulate --device-id esp32-001")
