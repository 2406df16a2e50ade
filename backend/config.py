import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

# Blink sequences
SEQUENCE_GAP_MS = int(os.getenv("SEQUENCE_GAP_MS", "1500"))

# Emergency countdown
COUNTDOWN_SECONDS = int(os.getenv("COUNTDOWN_SECONDS", "10"))
TICK_INTERVAL_MS = int(os.getenv("TICK_INTERVAL_MS", "1000"))

# Emergency alert content
ALERT_KIND = "Emergency Blink Signal (5 consecutive blinks)"
SYSTEM_NAME = "BlinkControl - Eye Blink-Based Appliance Control"
DEFAULT_CONTACT_EMAIL = os.getenv("DEFAULT_CONTACT_EMAIL", "")

# Appliance dashboard
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "50"))

# Server
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
