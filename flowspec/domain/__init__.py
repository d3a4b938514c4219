"""Domain layer: parsed package entities and domain exceptions."""
