"""
Adapters package for the model query cache.

Contains the HTTP client wrapper for the model API. Adapters encapsulate:

- Request URLs and body encoding
- Response envelope handling
- Error handling that maps to shared errors
"""

from .model_api_client import ModelApiClient

__all__ = [
    "ModelApiClient",
]
