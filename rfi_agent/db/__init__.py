# =============================================================================
# Database Package
# =============================================================================
# Provides the SQLAlchemy engine, session management, and ORM models.
#
# Key exports:
#   - get_sync_session: context manager for a committed/rolled-back session
#   - Base: SQLAlchemy declarative base
#   - BatchJobRecord, JobStatus: persisted batch jobs
# =============================================================================
