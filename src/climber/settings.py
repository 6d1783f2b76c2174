from __future__ import annotations
import os
from pathlib import Path

CONFIG_DIR = Path(os.environ.get("CLIMBER_CONFIG_DIR", str(Path.home() / ".climber-config")))
WORKSPACE = os.environ.get("CLIMBER_WORKSPACE", "default")
ENVIRONMENT = os.environ.get("CLIMBER_ENV", "default")

MAX_RETRIES = int(os.environ.get("CLIMBER_MAX_RETRIES", "30"))
RETRY_DELAY_MS = int(os.environ.get("CLIMBER_RETRY_DELAY_MS", "2000"))
READINESS_TIMEOUT_MS = int(os.environ.get("CLIMBER_READINESS_TIMEOUT_MS", "5000"))

# seconds to let a service settle before its dependents start
STABILIZE_DELAY = float(os.environ.get("CLIMBER_STABILIZE_DELAY", "1.0"))
