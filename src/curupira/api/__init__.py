"""HTTP surface over the tool registry.

PUBLIC API:
  - create_api: Build the FastAPI application for a CurupiraApp
  - run_api_server: Serve the API with uvicorn (blocking)
"""

from curupira.api.app import create_api
from curupira.api.server import run_api_server

__all__ = ["create_api", "run_api_server"]
