"""
能量模型
"""
from .service import EnergyService, state_for

__all__ = ["EnergyService", "state_for"]
