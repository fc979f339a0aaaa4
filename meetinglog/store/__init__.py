from meetinglog.store.database import Database, insert_ignore, row_to_dict
from meetinglog.store import schema

__all__ = ["Database", "insert_ignore", "row_to_dict", "schema"]
