"""Organization repositories."""
from .area_repository import AreaRepository

__all__ = ['AreaRepository']
