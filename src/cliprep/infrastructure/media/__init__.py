# Media Storage Package
from .filesystem import FileMediaRepository

__all__ = ["FileMediaRepository"]
