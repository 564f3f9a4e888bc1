"""Initialize the database tables."""

from marketplace_split.core.database import init_db
from marketplace_split.core.dependencies import get_engine

print("Creating database tables...")
init_db(get_engine())
print("Tables created successfully!")
