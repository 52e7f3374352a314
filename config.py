import os
from dotenv import load_dotenv

load_dotenv()

PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Visitor geolocation lookup; "{ip}" is replaced with the visitor address
GEO_LOOKUP_URL = os.getenv("GEO_LOOKUP_URL", "http://ip-api.com/json/{ip}")
GEO_TIMEOUT_SECONDS = float(os.getenv("GEO_TIMEOUT_SECONDS", "5"))

NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10"))

# Sessions older than the retention window are removed on every sweep
SESSION_RETENTION_SECONDS = int(os.getenv("SESSION_RETENTION_SECONDS", "86400"))
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "3600"))

# Where visitors land after a tracked open
LANDING_URL = os.getenv("LANDING_URL", "https://github.com/trending")

SERVICE_NAME = "Link Visit Tracker"
SERVICE_VERSION = "2.0.0"
