# Persistence Package
from .json_store import JsonStateStore

__all__ = ["JsonStateStore"]
