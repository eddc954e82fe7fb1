from .attendance_sheet import AttendanceSheet, SheetCounts
from .connectivity import ConnectivityMonitor
from .data_context import DataContext
from .school_service import SchoolService, UnknownClassError, UnknownStudentError
from .statistics import AttendanceStats, ClassDayStats, compute_class_day_stats, compute_student_stats
from .sync_coordinator import DrainResult, PushState, SyncCoordinator, SyncPendingError, SyncQueuedError

__all__ = [
	"AttendanceSheet",
	"SheetCounts",
	"ConnectivityMonitor",
	"DataContext",
	"SchoolService",
	"UnknownClassError",
	"UnknownStudentError",
	"AttendanceStats",
	"ClassDayStats",
	"compute_class_day_stats",
	"compute_student_stats",
	"DrainResult",
	"PushState",
	"SyncCoordinator",
	"SyncPendingError",
	"SyncQueuedError",
]
