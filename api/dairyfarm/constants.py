class Collections:
    USERS = "users"
    FARMS = "farms"
    COWS = "cows"
    CHICKEN_BATCHES = "chicken_batches"
    CHICKEN_COUNT_CHANGES = "chicken_count_changes"
    CHICKEN_FEED_RECORDS = "chicken_feed_records"
    MILK_RECORDS = "milk_records"
    MILK_SALES = "milk_sales"
    EGG_RECORDS = "egg_records"
    FEED_RECORDS = "feed_records"
    FEED_INVENTORY = "feed_inventory"
    HEALTH_RECORDS = "health_records"


COW_STAGES = ("active", "dry_period", "heat", "pregnant", "lactating", "sick")
MILKING_SESSIONS = ("morning", "afternoon", "evening")

FEED_TYPES = {
    "concentrates": ["dairy_meal", "maize_jam"],
    "minerals": ["maclic_supa", "maclic_plus"],
    "roughage": ["napier", "hay", "silage"],
}

WORKING_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

DEFAULT_FARM_SETTINGS = {
    "milkingSessions": list(MILKING_SESSIONS),
    "milkingTimes": {"morning": "06:00", "afternoon": "13:00", "evening": "18:00"},
    "defaultCurrency": "KES",
    "workingDays": WORKING_DAYS,
}

# Policy constants, not configurable.
LOW_MILK_THRESHOLD_LITRES = 5
TREND_THRESHOLD_PERCENT = 5
DEFAULT_BATCH_LIFESPAN_DAYS = 365
DEFAULT_EGG_PRODUCTION_AGE_DAYS = 150
DEFAULT_BATCH_SIZE = 100
TOP_PERFORMERS_LIMIT = 5

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10
