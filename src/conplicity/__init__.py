"""
Conplicity - Docker volume backups with duplicity
"""

__version__ = "0.1.0"

from .core import Conplicity
from .errors import ConplicityError

__all__ = ["Conplicity", "ConplicityError"]
