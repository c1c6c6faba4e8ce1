"""Constants for FieldOffice"""

# Version info
APP_VERSION = "1.4.0"

# Rank Settings
RANK_SETTINGS = {
    'DIRECTOR_RANK': 9,            # Rank that maps to the Director role
    'DEPUTY_DIRECTOR_RANK': 8,     # Rank that maps to the Deputy Director role
    'PROMOTION_RULE_OFFSET': 3,    # Promotion rule rows start at this rank
    'ADMIN_RANK': 9,               # Admins share the top rank visually
    'WHITELIST_RANK': 0            # Rank given to newly whitelisted agents
}

DIRECTOR_RANK = RANK_SETTINGS['DIRECTOR_RANK']
DEPUTY_DIRECTOR_RANK = RANK_SETTINGS['DEPUTY_DIRECTOR_RANK']
PROMOTION_RULE_OFFSET = RANK_SETTINGS['PROMOTION_RULE_OFFSET']

# Positions assigned automatically
POSITIONS = {
    'DIRECTOR': 'Director',
    'DEPUTY_DIRECTOR': 'Deputy Director',
    'CADET': 'Cadet',
    'ADMIN': 'Portal Administrator'
}

PENALTY_TYPE = "Severe reprimand"
PERMANENT_TERM = "Permanent"

# Department keys with a fixed meaning
DEPARTMENT_KEYS = {
    'ACADEMY': 'ACADEMY',
    'MANAGEMENT': 'MANAGEMENT'
}

DEFAULT_CHAT_CHANNEL = 'general'

# Portal sections used as notification links
LINKS = {
    'PROFILE': 'profile',
    'CHAT': 'chat',
    'PROMOTIONS': 'promotions',
    'PENALTIES': 'penalties',
    'CHARTER': 'charter'
}

# Request titles used in audit details and notifications
REQUEST_TITLES = {
    'promotion': 'Promotion request',
    'penalty_removal': 'Penalty removal request',
    'department_join': 'Department transfer request to {department}'
}

# Evidence fields that must accompany each request kind
REQUEST_EVIDENCE = {
    'promotion': {
        'stats_link': 'City hall statement [/stats + /time]',
        'progress_link': 'Personal file [/jobprogress + /time]',
        'members_link': 'Staff list [/members + /time]'
    },
    'penalty_removal': {
        'stats_link': 'City hall statement [/stats + /time]',
        'members_link': 'Staff list [/members + /time]'
    }
}

# Message Templates
NOTIFICATION_MESSAGES = {
    'PENALTY_ISSUED': "You have received a {penalty_type} from {actor}. Reason: {reason}",
    'RANK_CHANGED': 'Your rank was changed to "{rank}" and your position to "{position}" by {actor}.',
    'FIRED': "You have been dismissed from the Bureau by {actor}. Reason: {reason}",
    'MENTION': 'You were mentioned by {sender} in #{channel}: "{text}"',
    'SYSTEM_UPDATE': "{actor} updated the {subject}.",
    'REQUEST_APPROVED': {
        'promotion': 'Your promotion request was approved. You have been promoted to "{rank}".',
        'penalty_removal': "Your penalty removal request was approved.",
        'department_join': "Your request to join the {department} department was approved."
    },
    'REQUEST_REJECTED': {
        'promotion': "Your promotion request was rejected.",
        'penalty_removal': "Your penalty removal request was rejected.",
        'department_join': "Your request to join the {department} department was rejected."
    }
}

# System settings announced to every member when saved
SYSTEM_UPDATES = {
    'PROMOTIONS': {
        'title': 'Promotion System',
        'subject': 'promotion system',
        'link': LINKS['PROMOTIONS']
    },
    'PENALTIES': {
        'title': 'Penalty Removal System',
        'subject': 'penalty removal system',
        'link': LINKS['PENALTIES']
    },
    'CHARTER': {
        'title': 'Bureau Charter',
        'subject': 'Bureau charter',
        'link': LINKS['CHARTER']
    }
}

SYSTEM_UPDATE_NEWS = {
    'TITLE': "Update: {title}",
    'CONTENT': "{actor} updated the {subject}. Please review the changes."
}

# Audit action labels
AUDIT_ACTIONS = {
    'PENALTY_ISSUED': 'Penalty issued',
    'PENALTY_REMOVED': 'Penalty removed',
    'RANK_CHANGED': 'Rank/position changed',
    'MEMBER_FIRED': 'Agent dismissed',
    'REQUEST_REVIEWED': 'Request reviewed: {outcome}',
    'SYSTEM_UPDATED': 'System updated: {title}',
    'WHITELIST_ADDED': 'Agent added to whitelist',
    'ADMIN_ADDED': 'Administrator added',
    'DIRECTOR_ASSIGNED': 'Director assigned',
    'RANK_NAMES_UPDATED': 'Rank names updated',
    'DEPARTMENT_NAMES_UPDATED': 'Department names updated',
    'BLACKLIST_ADDED': 'Blacklist entry added',
    'BLACKLIST_REMOVED': 'Blacklist entry removed'
}

# Lock Settings
LOCK_SETTINGS = {
    'KEY_PREFIX': 'fieldoffice:lock',
    'STATE_KEY': 'state',   # Held by every state transition
    'TIMEOUT': 30,          # Seconds before a held state lock expires
    'BLOCKING_TIMEOUT': 5,  # Seconds to wait for the state lock
    'REFRESH_INTERVAL': 60  # Seconds between background reloads of the stored state
}

# Cache Settings
CACHE_SETTINGS = {
    'REDIS_TIMEOUT': 5,          # Redis operation timeout in seconds
    'REDIS_RETRY_COUNT': 3,      # Number of retries for Redis operations
    'REDIS_RETRY_DELAY': 1       # Delay between retries in seconds
}

# Database Settings
DB_SETTINGS = {
    'POOL_SIZE': 20,
    'MAX_OVERFLOW': 10,
    'POOL_TIMEOUT': 30,
    'POOL_RECYCLE': 1800,
    'ECHO': False
}

# Delivery Settings
DELIVERY_SETTINGS = {
    'WEBHOOK_USERNAME': 'Bureau Portal',
    'WEBHOOK_PREFIX': 'https://discord.com/api/webhooks/',
    'MAX_MESSAGE_LENGTH': 2000
}

# Path Configuration
from pathlib import Path
BASE_DIR = Path(__file__).resolve().parent.parent.parent
LOG_DIR = BASE_DIR / "logs"
