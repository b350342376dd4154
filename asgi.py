"""
asgi.py -- Application assembly for AuthGate.

This is the process entry point for ASGI servers. Settings are loaded and
validated here, once; a missing production SECRET_KEY fails the import and
therefore the server start.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import create_app
from core.config import configure_logging, get_settings

settings = get_settings()
configure_logging(settings.log_level)
app = create_app(settings)
