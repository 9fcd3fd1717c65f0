"""Application package bootstrap hooks."""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv


_ROOT_DIR = Path(__file__).resolve().parent.parent

# Populate COMFYUI_* and SEEDREAM_* keys before app.config reads them.
# .env.local overrides .env for developer-specific backends.
load_dotenv(_ROOT_DIR / ".env")
load_dotenv(_ROOT_DIR / ".env.local", override=True)
