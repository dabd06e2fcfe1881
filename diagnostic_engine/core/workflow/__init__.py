"""
Visit workflow: the seven-stage session state machine and its auto-save task.
"""
from .autosave import AutoSaveTask
from .session import STAGE_TITLES, Stage, VisitSession

__all__ = ["AutoSaveTask", "STAGE_TITLES", "Stage", "VisitSession"]
