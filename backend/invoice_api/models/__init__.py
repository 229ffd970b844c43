"""ORM tables, enumerations and Pydantic schemas."""
