"""Service layer: access control, aggregation, budgets and suggestions."""
