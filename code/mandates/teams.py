from __future__ import annotations

from typing import Dict, Optional


TEAM_PRE_INSTALLATION = "Pre-Installation"
TEAM_POST_INSTALLATION = "Post-Installation"
TEAM_NO_ACTION_INACTIVE = "No action - Inactive"
TEAM_NO_ACTION_AT_OUR_REQUEST = "No action - at our request"

DEFAULT_TEAM = TEAM_PRE_INSTALLATION

# Exact match on the CRM pipeline stage; anything else falls back to DEFAULT_TEAM.
STAGE_TEAMS: Dict[str, str] = {
    "N/A": TEAM_PRE_INSTALLATION,
    "SOLD": TEAM_PRE_INSTALLATION,
    "INSTALL": TEAM_PRE_INSTALLATION,
    "PROVISIONING": TEAM_POST_INSTALLATION,
    "INVOICING": TEAM_POST_INSTALLATION,
    "ACTIVE": TEAM_POST_INSTALLATION,
    "INACTIVE": TEAM_NO_ACTION_INACTIVE,
}

# Processor wording when the customer cancelled via us; case-sensitive.
AT_YOUR_REQUEST = "at your request"


def classify_team(stage: Optional[str], description: Optional[str]) -> str:
    """
    Map a resolved CRM stage and the event description to the team that acts on it.

    The "at your request" override wins over every stage.
    """
    team = STAGE_TEAMS.get(stage or "", DEFAULT_TEAM)
    if AT_YOUR_REQUEST in (description or ""):
        team = TEAM_NO_ACTION_AT_OUR_REQUEST
    return team
