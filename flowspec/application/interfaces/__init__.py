"""Application ports (Protocols) implemented by infrastructure."""

from flowspec.application.interfaces.repositories import ISkillDefinitionRepository
from flowspec.application.interfaces.services import (
    IArchiveSource,
    ICodeHostClient,
    IEmailSender,
    INotifier,
)

__all__ = [
    "IArchiveSource",
    "ICodeHostClient",
    "IEmailSender",
    "INotifier",
    "ISkillDefinitionRepository",
]
