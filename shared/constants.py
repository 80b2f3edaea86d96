# shared/constants.py
from pathlib import Path

# =========================
# GENERAL CONFIGS
# =========================
TIMEZONE = "Europe/Copenhagen"

# =====================
# SPREADSHEET LAYOUT
# =====================

# Row 1 of every tab is the header row and is never parsed
SHEET_HEADER_ROWS = 1

# Last row read from the consolidated resource tab
ALL_RESOURCES_MAX_ROW = 1000

# Header styling used when a new document is created
SHEET_HEADER_BACKGROUND = {"red": 1, "green": 0.95, "blue": 0.75}

# =====================
# GOOGLE ADS SAFETY LIMITS
# =====================

# Budget used when a campaign row has no budget cell
GGADS_MIN_BUDGET = 0.01  # must be > 0

# Allowed campaign statuses
GGADS_ALLOWED_CAMPAIGN_STATUSES = {"ENABLED", "PAUSED"}

# Allowed keyword match types
GGADS_ALLOWED_MATCH_TYPES = {"BROAD", "PHRASE", "EXACT"}


# =========================
# PARALLEL EXECUTION CONFIG
# =========================

PARALLEL_MAX_WORKERS = 4


# =====================
# LOGGING CONFIG
# =====================

# Global switch
LOGGING_ENABLED = True

# Logging level
# DEBUG | INFO | WARNING | ERROR | CRITICAL
LOG_LEVEL = "INFO"

# Directory for all logs (anchored to repo root)
LOG_DIR = str(Path(__file__).resolve().parents[1] / "logs")

# Per-run file rotation (within a single run)
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB per file
LOG_BACKUP_COUNT = 5  # Rotated files per run

# Retention policy
LOG_RETENTION_DAYS = 7  # Delete logs older than N days
