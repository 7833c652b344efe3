from .location import LocationState
from .task import Task, TaskStatus
from .points_ledger import PointsLedgerEntry
from .cycle import CycleRecord
from .unlock import LocationMilestone, LocationAchievement

__all__ = [
    "LocationState",
    "Task",
    "TaskStatus",
    "PointsLedgerEntry",
    "CycleRecord",
    "LocationMilestone",
    "LocationAchievement",
]
