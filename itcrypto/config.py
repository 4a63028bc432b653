"""
Configuration module for itcrypto.

Centralizes configuration with environment variable support. The protocol
core is a pure transform and reads none of this; only identity generation,
logging setup, the HTTP directory and the CLI consult it.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

# ============================================================
# Environment Configuration
# ============================================================

# Signing algorithm for freshly generated identities (ES256|EdDSA)
SIGNING_ALG = os.getenv("ITCRYPTO_SIGNING_ALG", "ES256")

# Logging
LOG_LEVEL = os.getenv("ITCRYPTO_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("ITCRYPTO_LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("ITCRYPTO_LOG_FILE", "")

# Directory service
DIRECTORY_URL = os.getenv("ITCRYPTO_DIRECTORY_URL", "")
DIRECTORY_TIMEOUT = float(os.getenv("ITCRYPTO_DIRECTORY_TIMEOUT", "5"))

# Trust anchor
CA_CERT_PATH = os.getenv("ITCRYPTO_CA_CERT_PATH", "trust/ca.pem")

# Development certificates
CERT_VALIDITY_DAYS = int(os.getenv("ITCRYPTO_CERT_VALIDITY_DAYS", "365"))


# ============================================================
# Loaders
# ============================================================

@lru_cache(maxsize=8)
def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def load_ca_certificate(path: Optional[str] = None) -> str:
    """Load the trusted CA certificate (PEM) with caching."""
    return _read_text(path or CA_CERT_PATH)


def invalidate_config_cache() -> None:
    """Drop cached file contents."""
    _read_text.cache_clear()


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate the configuration.
    Returns dict of check -> ok.
    """
    return {
        "signing_alg": SIGNING_ALG in ("ES256", "EdDSA"),
        "ca_certificate": Path(CA_CERT_PATH).exists(),
        "directory_timeout": DIRECTORY_TIMEOUT > 0,
    }


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("ITCRYPTO_DEBUG", "").lower() in ("1", "true", "yes")
