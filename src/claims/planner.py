"""
Default action planning from a cover classification.

Every claim gets the baseline handling steps; each classified cover adds its
own follow-ups. Titles are de-duplicated case-insensitively, first seen wins.
"""

from datetime import datetime, timedelta
from typing import Dict, List, NamedTuple, Optional

from .schema import Action, ActionStatus, Classification, CoverType, OwnerRole, utc_now


class ActionTemplate(NamedTuple):
    title: str
    owner_role: OwnerRole
    due_days: int


BASELINE_ACTIONS = [
    ActionTemplate("Create claim file and preserve evidence", OwnerRole.CLAIMS, 0),
    ActionTemplate("Confirm cover(s) and notify relevant insurers/club", OwnerRole.CLAIMS, 0),
    ActionTemplate("Collect supporting documents (log extracts, photos, reports)", OwnerRole.OPS, 1),
    ActionTemplate("Appoint / confirm surveyor (if required)", OwnerRole.CLAIMS, 1),
    ActionTemplate("Establish initial reserve (estimate) and deductible impact", OwnerRole.FINANCE, 2),
    ActionTemplate("Track updates and maintain status log", OwnerRole.CLAIMS, 0),
]

COVER_ACTIONS: Dict[CoverType, List[ActionTemplate]] = {
    CoverType.PI: [
        ActionTemplate("Identify third-party involvement and liability exposure", OwnerRole.CLAIMS, 1),
        ActionTemplate("Obtain statements (Master/crew) and incident report", OwnerRole.OPS, 1),
        ActionTemplate("Notify relevant correspondents / local agents if needed", OwnerRole.CLAIMS, 1),
    ],
    CoverType.HM: [
        ActionTemplate("Obtain repair quotations and damage description", OwnerRole.TECHNICAL, 2),
        ActionTemplate("Confirm class notification, attendance and temporary repairs", OwnerRole.TECHNICAL, 1),
        ActionTemplate("Appoint / confirm surveyor (if required)", OwnerRole.CLAIMS, 1),
    ],
    CoverType.CARGO: [
        ActionTemplate("Arrange cargo survey and preserve damaged cargo evidence", OwnerRole.OPS, 0),
        ActionTemplate("Collect cargo documents (B/L, mate's receipt, tally, condition reports)", OwnerRole.OPS, 1),
    ],
    CoverType.CHARTERERS_LIABILITY: [
        ActionTemplate("Extract charterparty clauses on liabilities and indemnities", OwnerRole.CHARTERING, 1),
        ActionTemplate("Notify charterers' liability insurer/handlers with preliminary position", OwnerRole.CLAIMS, 1),
        ActionTemplate("Collect SOF/NOR and terminal correspondence", OwnerRole.OPS, 2),
    ],
    CoverType.FDD: [
        ActionTemplate("Summarise dispute issues and relevant contract clauses", OwnerRole.CLAIMS, 2),
        ActionTemplate("Prepare chronology and evidence pack for legal review", OwnerRole.CLAIMS, 3),
    ],
    CoverType.UNCLEAR: [
        ActionTemplate("Request missing incident details from the Master/vessel", OwnerRole.OPS, 0),
        ActionTemplate("Review notification manually and confirm applicable cover", OwnerRole.CLAIMS, 1),
    ],
}


def build_action(template: ActionTemplate, created_at: datetime) -> Action:
    return Action(
        title=template.title,
        owner_role=template.owner_role,
        due_at=created_at + timedelta(days=template.due_days),
        status=ActionStatus.OPEN,
        reminder_at=None,
        notes="",
        created_at=created_at,
        updated_at=created_at,
    )


def plan(classification: Optional[Classification], created_at: Optional[datetime] = None) -> List[Action]:
    """
    Generate the starter task list for a claim.

    Args:
        classification: Cover classification (None plans the baseline only)
        created_at: Claim creation time; due dates are offsets from it

    Returns:
        De-duplicated list of OPEN actions, baseline first
    """
    created_at = created_at or utc_now()

    templates = list(BASELINE_ACTIONS)
    if classification is not None:
        for cover in classification.covers:
            templates.extend(COVER_ACTIONS.get(cover.type, []))

    seen = set()
    actions = []
    for template in templates:
        key = template.title.casefold()
        if key in seen:
            continue
        seen.add(key)
        actions.append(build_action(template, created_at))
    return actions
