"""
arc-data - local data layer for a REST client application.

Stores saved/history requests, projects, variables, certificates and URL
history in an embedded document store, imports legacy and third-party export
formats (ARC legacy/Dexie/PouchDB, Postman v1/v2/v2.1/backup/environment),
exports HAR logs, and keeps a derived URL index for fast request lookup.

Stack:
- Python + SQLite (document store and derived index)
- PyYAML (import payload parsing)
- JSON export objects as the wire format
"""

__version__ = "0.1.0"
