"""Core input models"""
from .models import Level, LevelSide, Snapshot, is_valid_level

__all__ = ["Level", "LevelSide", "Snapshot", "is_valid_level"]
