"""Centralized path definitions for mailpipe.

Single source of truth for on-disk locations. Nothing is created at
import time; callers create directories on first use.
"""

from pathlib import Path

# Base application directory
MAILPIPE_DIR = Path.home() / ".mailpipe"

# Subdirectories
LOGS_DIR = MAILPIPE_DIR / "logs"

# Specific files
CONFIG_PATH = MAILPIPE_DIR / "config.json"
