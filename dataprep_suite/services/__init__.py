"""
Service layer for the Data Preparedness Suite.

Each service wraps a SQLAlchemy Session (and, where records are involved, a
StorageProvider) and raises DataPrepError subclasses on failure.
"""
