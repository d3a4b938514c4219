"""External service clients (code host, email, archive download)."""
