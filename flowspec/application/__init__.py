"""Application layer: analysis pipeline services, DTOs, ports and use cases."""
