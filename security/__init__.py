"""Sandbox policy enforced by every tool before it touches the system."""

from security.policy import ActionTracker, AutonomyLevel, SecurityPolicy

__all__ = ["ActionTracker", "AutonomyLevel", "SecurityPolicy"]
