"""Seed the knowledge base with well-known Power Automate connectors."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flowspec.application.dtos.skill_definition import (
    SeedResult,
    SkillDefinitionCreate,
    build_connector_key,
)
from flowspec.shared.telemetry.logging import get_logger

if TYPE_CHECKING:
    from flowspec.application.interfaces.repositories import ISkillDefinitionRepository

logger = get_logger(__name__)

ONEDRIVE = "shared_onedriveforbusiness"
OUTLOOK = "shared_office365"
SHAREPOINT = "shared_sharepointonline"
TEAMS = "shared_teams"
APPROVALS = "shared_approvals"

# (connector, operation or None for the connector-level default, meaning, impact)
_SEED_DATA: tuple[tuple[str, str | None, str, str], ...] = (
    (
        ONEDRIVE,
        None,
        "OneDrive for Business file operations",
        "File reads and writes stop and the business processing that depends on them is interrupted",
    ),
    (
        ONEDRIVE,
        "OnNewFilesV2",
        "Detects new files uploaded to a OneDrive folder",
        "New files are detected late or not at all and follow-up notifications and processing do not run",
    ),
    (
        ONEDRIVE,
        "GetFileContent",
        "Reads the content of a file from OneDrive",
        "File content cannot be read and data processing is interrupted",
    ),
    (
        ONEDRIVE,
        "CreateFile",
        "Creates a new file in OneDrive",
        "The file is not created and output data is not saved",
    ),
    (
        OUTLOOK,
        None,
        "Office 365 Outlook mail operations",
        "Sending and receiving mail stops and notifications to stakeholders are interrupted",
    ),
    (
        OUTLOOK,
        "SendEmailV2",
        "Sends an email with Office 365 Outlook",
        "Email notifications are not sent and stakeholders are informed late",
    ),
    (
        OUTLOOK,
        "OnNewEmail",
        "Triggers when a new email arrives",
        "Incoming mail is no longer detected and mail-driven processing does not run",
    ),
    (
        SHAREPOINT,
        None,
        "SharePoint Online list and library operations",
        "SharePoint data cannot be read or written and information sharing between teams stops",
    ),
    (
        SHAREPOINT,
        "GetItems",
        "Reads items from a SharePoint list",
        "List data cannot be read and downstream processing is interrupted",
    ),
    (
        SHAREPOINT,
        "PostItem",
        "Adds a new item to a SharePoint list",
        "The item is not registered and the business record is incomplete",
    ),
    (
        TEAMS,
        None,
        "Microsoft Teams messages and notifications",
        "Notifications to Teams stop and real-time coordination in the team is interrupted",
    ),
    (
        TEAMS,
        "PostMessageToChannel",
        "Posts a message to a Teams channel",
        "The channel message is not posted and team members are informed late",
    ),
    (
        APPROVALS,
        None,
        "Approval workflow processing",
        "Approval requests are not sent or tracked and the approval process stalls",
    ),
    (
        APPROVALS,
        "CreateAnApproval",
        "Creates an approval request and sends it to the approvers",
        "The approval request is not sent and work waiting for approval stalls",
    ),
    (
        APPROVALS,
        "WaitForAnApproval",
        "Waits for the outcome of an approval",
        "The approval outcome is not received and post-approval steps do not run",
    ),
)

SEED_SKILL_DEFINITIONS: tuple[SkillDefinitionCreate, ...] = tuple(
    SkillDefinitionCreate(
        connector_id=build_connector_key(connector, action),
        action_name=action,
        business_meaning=meaning,
        failure_impact=impact,
    )
    for connector, action, meaning, impact in _SEED_DATA
)


async def seed_skill_definitions(repo: ISkillDefinitionRepository) -> SeedResult:
    """Insert the built-in skill definitions that are not present yet.

    Existing records (matched by connector key) are left untouched, so
    running the seed twice inserts nothing the second time.
    """
    inserted = 0
    for seed in SEED_SKILL_DEFINITIONS:
        if await repo.get_by_connector_key(seed.connector_id) is not None:
            continue
        await repo.create_skill(seed)
        inserted += 1
    logger.info("Seeded skill definitions: %d of %d inserted", inserted, len(SEED_SKILL_DEFINITIONS))
    return SeedResult(total=len(SEED_SKILL_DEFINITIONS), inserted=inserted)
