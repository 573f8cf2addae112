"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL. Notifications are never physically deleted
(soft delete via the `deleted` flag), so no table here is truncated by the app.
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "notifications",
    "notification_preferences",
    "push_tokens",
)
