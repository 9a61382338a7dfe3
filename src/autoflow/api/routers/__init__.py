from . import schedules, workflows

__all__ = ["schedules", "workflows"]
