"""GitHub webhook API schemas."""

from pydantic import BaseModel, Field


class WebhookAckResponse(BaseModel):
    """Acknowledgement returned for every verified delivery.

    resumed_runs lists the runs the event was recorded on; their replay
    continues after the response.
    """

    ok: bool = True
    event: str
    dispatched: bool = False
    resumed_runs: list[str] = Field(default_factory=list)
