# Persistence layer: SQLAlchemy models, migrations and query helpers
