"""Adapters that connect the core to HTTP, SQLite, and Telegram."""
