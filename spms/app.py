"""ASGI entry point: ``uvicorn spms.app:app``."""
from . import create_app

app = create_app()
