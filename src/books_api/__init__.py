"""Books API: CRUD service for books over SQL, Redis and Kafka."""

__version__ = "0.1.0"
