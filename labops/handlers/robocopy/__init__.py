from .handler import RobocopyHandler, robocopy_status

__all__ = ["RobocopyHandler", "robocopy_status"]
