# Configuration module for server-side constants and defaults.
# Every constant can be overridden by an environment variable of the same name.

import os
from pathlib import Path

# Grid is GRID_SIZE x GRID_SIZE letters.
GRID_SIZE = int(os.environ.get("GRID_SIZE", "4"))

# Length of one game, and the countdown tick cadence.
GAME_DURATION_SECONDS = int(os.environ.get("GAME_DURATION_SECONDS", "120"))
TICK_INTERVAL_SECONDS = float(os.environ.get("TICK_INTERVAL_SECONDS", "1.0"))

# Raw line-protocol listener.
GAME_HOST = os.environ.get("GAME_HOST", "0.0.0.0")
GAME_PORT = int(os.environ.get("GAME_PORT", "12345"))

# FastAPI app (leaderboard API and WebSocket transport).
HTTP_HOST = os.environ.get("HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.environ.get("HTTP_PORT", "8000"))

# Newline-delimited word list, loaded once at start-up.
DICTIONARY_PATH = Path(os.environ.get("DICTIONARY_PATH") or Path(__file__).parent / "dictionary.txt")

# SQLite DB file path for players, game results and the all-time leaderboard.
DB_PATH = Path(os.environ.get("DB_PATH") or Path(__file__).parent / "wordhunt.db")
DATABASE_URL = os.environ.get("DATABASE_URL") or f"sqlite:///{DB_PATH}"

# CORS origins (if you deploy a web client separately, add its domain here).
CORS_ORIGINS = ["*"]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Default number of rows returned by leaderboard listings.
LEADERBOARD_LIMIT = int(os.environ.get("LEADERBOARD_LIMIT", "10"))
