"""Small shared utilities (currency/date helpers, sanitization)."""
