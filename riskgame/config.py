"""
Single place for default game configuration.
Change DEFAULT_MAP_ID to switch which map is used when creating a new game (when no map_id is provided).
"""
import os

# Map id from data/maps/<id>.json. This is the default for new games.
DEFAULT_MAP_ID = "classic"

MIN_PLAYERS = 2
MAX_PLAYERS = 6

# How many times the orchestrator re-reads and re-applies a move after a version conflict.
MOVE_RETRY_LIMIT = int(os.environ.get("RISK_MOVE_RETRY_LIMIT", "3"))

LOG_LEVEL = os.environ.get("RISK_LOG_LEVEL", "INFO")
