"""Initialize the database tables."""

import square_connect.core.models  # noqa: F401  registers the tables on Base.metadata
from square_connect.core.database import Base, get_engine

print("Creating database tables...")
Base.metadata.create_all(bind=get_engine())
print("Tables created successfully!")
