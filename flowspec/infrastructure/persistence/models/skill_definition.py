"""SkillDefinition ORM model (knowledge base of connector/operation meanings)."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from flowspec.infrastructure.persistence.database import Base
from flowspec.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin


class SkillDefinition(CuidMixin, TimestampMixin, Base):
    """Skill definition. Table: skill_definition.

    connector_id holds the bare connector id for connector-level defaults
    (action_name NULL) and "connector/action" for operation-level records,
    so one unique column covers both uniqueness rules.
    """

    __tablename__ = "skill_definition"

    connector_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    action_name: Mapped[str | None] = mapped_column(String, nullable=True)
    business_meaning: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_impact: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
