"""Core domain logic and backends."""
