DB_FILE = "expenses.db"

DATE_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")

# Percent of the monthly budget at which an alert fires, lowest first
BUDGET_ALERT_THRESHOLDS = (80, 90, 100)

# (days before due date, identifier suffix)
REMINDER_OFFSETS = (
    (7, "7days"),
    (3, "3days"),
    (1, "1day"),
    (0, "dueday"),
)

# sqlite busy timeout, seconds
DB_TIMEOUT = 5.0

DEFAULT_CATEGORIES = [
    {"name": "Food",          "icon": "food",            "color": "#FF6B6B", "budget": 0},
    {"name": "Transport",     "icon": "car",             "color": "#4ECDC4", "budget": 0},
    {"name": "Shopping",      "icon": "shopping",        "color": "#45B7D1", "budget": 0},
    {"name": "Bills",         "icon": "file-document",   "color": "#96CEB4", "budget": 0},
    {"name": "Entertainment", "icon": "gamepad-variant", "color": "#D4A5A5", "budget": 0},
    {"name": "Health",        "icon": "medical-bag",     "color": "#9B6B6C", "budget": 0},
    {"name": "Travel",        "icon": "airplane",        "color": "#CEE5D0", "budget": 0},
    {"name": "Other",         "icon": "dots-horizontal", "color": "#B5B5B5", "budget": 0},
]

DEFAULT_SETTINGS = [
    ("currency_symbol", "$"),
    ("reminders_enabled", "1"),
]
