"""
Vercel entry point for the FastAPI backend.

Mangum adapts the ASGI app to the serverless function interface.
"""

from mangum import Mangum

from main import app as application

# lifespan='off' so a cold start never fails on startup events
handler = Mangum(application, lifespan="off")

__all__ = ["handler", "application"]
