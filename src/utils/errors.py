# --- Custom Exception Classes ---
class InvalidRequestError(Exception):
    """A required field is missing or malformed. Raised before any state is touched."""
    pass

class StorageError(Exception):
    """The counter or the patient ledger could not be written."""
    pass
