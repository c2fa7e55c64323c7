"""Chat-bot lead intake -- expiring conversation sessions, step machine, bot API client."""
