"""ID generators: CUID2 primary keys and deterministic workflow step keys."""

import hashlib

from cuid2 import cuid_wrapper

cuid_generator = cuid_wrapper()

IDEMPOTENCY_KEY_LENGTH = 12


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2)."""
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def idempotency_key(run_id: str, step_name: str) -> str:
    """Return the stable key for one step of one workflow run.

    The same (run_id, step_name) always yields the same key, so a replayed
    step can find the external resource it created on an earlier attempt.
    """
    digest = hashlib.sha256(f"{run_id}:{step_name}".encode()).hexdigest()
    return digest[:IDEMPOTENCY_KEY_LENGTH]
