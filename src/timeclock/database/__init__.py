from timeclock.database.connection import DatabaseManager, get_db_manager

__all__ = ["DatabaseManager", "get_db_manager"]
