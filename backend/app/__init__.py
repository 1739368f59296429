"""Top-level application package for the household budget API.

This package contains the FastAPI backend for a shared household
expense tracker: database models, Pydantic schemas, the service layer
(access control, spending summaries, multi-household merging, budget
progress and budget suggestions) and the API routers exposing them.
The report services are pure computations over already-fetched
records; the repositories and routers around them are kept thin.

To run the API locally you can execute:

```bash
uvicorn app.api.main:app --reload --app-dir backend
```

This will serve the FastAPI application on http://localhost:8000 and
automatically reload on code changes. The default configuration uses
a local SQLite database stored in ``household.db``. You can override
configuration values using environment variables or a ``.env`` file at
the project root.
"""

__all__: list[str] = []  # explicit for linters; populated dynamically elsewhere if needed
