"""Domain constants shared by validators, services and routes."""

# Task field limits (word counts)
TITLE_MAX_WORDS = 45
DESCRIPTION_MAX_WORDS = 450
LOCATION_MAX_WORDS = 45

REWARD_MIN = 1
REWARD_MAX = 5000

# A creator may hold at most this many active tasks at once
MAX_ACTIVE_TASKS = 3

VERIFICATION_CODE_LENGTH = 6

TASK_TYPES = ('normal', 'joint')

TASK_STATUS_ACTIVE = 'active'
TASK_STATUS_COMPLETED = 'completed'

# Why a task reached status 'completed'
CLOSED_FULFILLED = 'fulfilled'
CLOSED_WITHDRAWN = 'withdrawn'

APPLICATION_PENDING = 'pending'
APPLICATION_APPROVED = 'approved'
APPLICATION_REJECTED = 'rejected'

RATING_MIN = 1
RATING_MAX = 5

LEADERBOARD_SIZE = 10

USER_SEARCH_LIMIT = 5
LEADERBOARD_ROLES = ('creator', 'doer')

# (minimum completed tasks, level, badge), highest first
USER_LEVELS = [
    (50, 'Expert', 'Gold'),
    (20, 'Pro', 'Silver'),
    (5, 'Regular', 'Bronze'),
    (0, 'Beginner', 'New'),
]

MESSAGE_MAX_LENGTH = 5000

ATTACHMENT_MAX_SIZE = 5 * 1024 * 1024  # 5MB

# Upload to the first bucket, fall back to the second
ATTACHMENT_BUCKETS = ('chat_attachments', 'user-content')
