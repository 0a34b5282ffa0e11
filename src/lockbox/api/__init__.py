# API Module - FastAPI REST backend

from .main import create_app, start_api_server

__all__ = ["create_app", "start_api_server"]
