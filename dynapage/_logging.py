import hashlib
import logging
from typing import Any

# Library logger; applications decide handlers and levels.
logger = logging.getLogger("dynapage")

# Add NullHandler to prevent "No handlers could be found" warnings
# if the application doesn't configure logging.
logger.addHandler(logging.NullHandler())


def redact_key(key: Any) -> str:
    """
    Redacts anchor and key values for logging.
    Hashes the values so log lines can be correlated without exposing record data.
    """
    if key is None:
        return "<none>"
    try:
        if isinstance(key, dict):
            redacted = {}
            for k in sorted(key):
                val_str = str(key[k]).encode("utf-8")
                redacted[k] = hashlib.sha256(val_str).hexdigest()[:8]
            return str(redacted)
        return hashlib.sha256(str(key).encode("utf-8")).hexdigest()[:8]
    except Exception:
        return "<redaction_failed>"
