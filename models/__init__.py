"""
Persistence layer. `storage` is the process-wide DBStorage; create_app()
points it at the configured database via storage.reload().
"""
from models.db_storage import DBStorage

storage = DBStorage()
