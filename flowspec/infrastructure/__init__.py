"""Infrastructure: persistence, external clients and workflow services."""
