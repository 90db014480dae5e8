"""
remotefs: remote filesystem over a small HTTP API
Built with FastAPI + Uvicorn + aiofiles
"""

__version__ = "1.0.0"
__author__ = "remotefs"
__description__ = "Remote filesystem over HTTP"
