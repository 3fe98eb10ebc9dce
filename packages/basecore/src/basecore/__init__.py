"""
basecore - shared infrastructure for the care platform services.

- settings: environment-driven configuration
- logging: root logger setup
- redis: Redis clients and stream group helpers
- db: SQLAlchemy engine and sessions
"""
