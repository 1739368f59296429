"""Domain models: enums, ORM tables and Pydantic schemas."""
