from src.models.base import Base
from src.models.swap import Swap

__all__ = [
    "Base",
    "Swap",
]
