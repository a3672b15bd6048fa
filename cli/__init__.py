"""
SceneReel CLI Tools

Command-line presentation of the generation controller.

Tools:
- progress_monitor: Real-time job event rendering
"""

from .progress_monitor import ProgressMonitor

__all__ = ["ProgressMonitor"]
