"""
Centralized constants for collections, presence, and badges.

Change collection names or caps here instead of scattering literals across services and routes.
"""

# Top-level collections and sub-collections (paths alternate collection/document segments)
USERS = "users"
PROJECTS = "projects"
TASKS = "tasks"
MESSAGES = "messages"
HISTORY = "history"
NOTIFICATIONS = "notifications"

# Scheduler job id prefix for presence heartbeats (one job per signed-in user)
PRESENCE_JOB_ID_PREFIX = "presence_heartbeat"

# Unread badge shows "9+" above this many
BADGE_CAP = 9

# Read marker keys: nexus_last_read_{kind}_{scope}_{user_id}
READ_MARKER_KEY_PREFIX = "nexus_last_read"
STREAM_CHAT = "chat"
STREAM_NOTIFICATIONS = "notifications"
NOTIFICATIONS_SCOPE = "inbox"

# Task fields
TASK_STATUSES = ("Pending", "In Progress", "Completed")
TASK_PRIORITIES = ("Low", "Medium", "High")
PENDING_STATUS = "Pending"

# Member search
SUGGESTION_MIN_CHARS = 3
SUGGESTION_LIMIT = 5
PREFIX_UPPER_BOUND = "\uf8ff"  # high code point: field >= p and field <= p + bound is a prefix match

# Notification types
NOTIFY_ASSIGNMENT = "assignment"
NOTIFY_TASK_UPDATE = "task_update"
NOTIFY_TASK_DELETED = "task_deleted"
NOTIFY_PROJECT_INVITE = "project_invite"
NOTIFY_PROJECT_DELETED = "project_deleted"

# Task fields any project member may edit; every other field is owner-only
MEMBER_EDITABLE_TASK_FIELDS = ("status", "percentDone", "comments")
# Status changes that also pin percentDone
STATUS_PERCENT_DONE = {"Completed": 100, "Pending": 0}
