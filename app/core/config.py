import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/outbox_db")

# Application Metadata
PROJECT_NAME = "Package Tracking Outbox Service"
VERSION = "1.0.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Outbox Processor Configuration
POLLING_INTERVAL = float(os.getenv("POLLING_INTERVAL", 30)) # Idle wait when the outbox is empty
ERROR_BACKOFF = float(os.getenv("ERROR_BACKOFF", 5)) # Wait after a failed poll iteration
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 10)) # How many events to fetch per poll
MAX_DELIVERY_ATTEMPTS = int(os.getenv("MAX_DELIVERY_ATTEMPTS", 0)) # 0 = retry forever
OUTBOX_PROCESSOR_ENABLED = os.getenv("OUTBOX_PROCESSOR_ENABLED", "true").lower() in ("1", "true", "yes")
