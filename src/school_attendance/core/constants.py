"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_PAGE = 1
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 200
DEFAULT_SORT_BY = "date"
DEFAULT_SORT_ORDER = "desc"

DEFAULT_MAX_BATCH_SIZE = 500

# Labels accepted when a (class, subject) pair has no session configuration.
DEFAULT_SESSION_NAMES = ("Lecture 1", "Lecture 2", "Lecture 3", "Lecture 4", "Lab", "Tutorial")

DEFAULT_ATTENDANCE_THRESHOLD = 75.0
MIN_SESSIONS_FOR_ALERT = 5
CRITICAL_ALERT_RATIO = 0.6
WARNING_ALERT_RATIO = 0.8

DEFAULT_AUDIT_HISTORY_LIMIT = 50
DEFAULT_USER_ACTIVITY_LIMIT = 100

# attendance_audit_logs column widths.
MAX_REASON_LENGTH = 500
MAX_IP_ADDRESS_LENGTH = 64
MAX_USER_AGENT_LENGTH = 255
MAX_SESSION_ID_LENGTH = 128

DEFAULT_JWT_EXPIRE_MINUTES = 60
JWT_ALGORITHM = "HS256"

SORTABLE_RECORD_FIELDS = ("date", "session", "status", "markedAt", "studentId", "classId", "subjectId")
