"""Service modules"""
from .monitor import RiskMonitor, build_notifiers

__all__ = ["RiskMonitor", "build_notifiers"]
