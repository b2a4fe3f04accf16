"""
resolution.py

Links a mandate event to a CRM account.

Cascade (priority-ordered, first match wins):
- M1_LEAD_ID        : customers_metadata_leadID equals crm_id OR crm_account_number
- M2_MANDATE_BRIDGE : mandates_id -> elevate_mandate_reference -> elevate_account_number
                      -> crm_account_number
- M3_CUSTOMER_ID    : customers_id equals crm_gocardless_id
- M4_CUSTOMER_NAME  : "given family" equals crm_name (exact, case-sensitive)

Invariants:
- Keys are trimmed before comparison. A skipped strategy is not recorded as attempted.
- M1 is skipped when the lead id trims to "". M2-M4 are skipped only when the raw
  field is "", so a blank-name event still runs M4 against crm_name == "".
- A candidate row whose crm_id AND crm_account_number are both empty never counts
  as a match; scanning moves on to the next candidate.
- Candidates are scanned in store order; the first qualifying row wins, even when
  an id match and an account-number match point at different rows.
- A lookup that raises is "no match" for that strategy. The error is carried on the
  Resolution as a diagnostic and the cascade continues.

Performance:
- ReferenceIndex loads both reference tables once per run into dict indexes,
  so resolution is O(candidates) per event with no store round-trips.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, fields
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd
from sqlalchemy.engine import Engine

from .ingest import full_customer_name
from .store import load_crm_accounts, load_elevate_accounts


UNMATCHED = "UNMATCHED"


# ======================================================
# PROFILE / RESULT
# ======================================================

@dataclass(frozen=True)
class CrmProfile:
    crm_account_number: str = ""
    crm_id: str = ""
    crm_name: str = ""
    crm_email: str = ""
    crm_premise_address: str = ""
    crm_stage_name: str = ""
    crm_gocardless_id: str = ""
    crm_zen_user_id: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "CrmProfile":
        return cls(**{f.name: _text(row.get(f.name, "")) for f in fields(cls)})

    def is_match(self) -> bool:
        return self.crm_id != "" or self.crm_account_number != ""

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


EMPTY_PROFILE = CrmProfile()


@dataclass(frozen=True)
class Resolution:
    profile: CrmProfile
    method: str
    attempted: Tuple[str, ...] = ()
    diagnostics: Tuple[str, ...] = ()

    @property
    def matched(self) -> bool:
        return self.method != UNMATCHED


def _text(x: object) -> str:
    if x is None or (not isinstance(x, str) and pd.isna(x)):
        return ""
    return str(x)


def _clean(x: object) -> str:
    return _text(x).strip()


# ======================================================
# REFERENCE INDEX
# ======================================================

class ReferenceIndex:
    """
    In-memory view of crmAccounts + elevateAccounts.

    Each index maps a key to row positions in store order, so the first
    qualifying position is the row a SQL scan would have returned first.
    """

    def __init__(self, crm_df: pd.DataFrame, elevate_df: pd.DataFrame):
        self._crm: List[CrmProfile] = [CrmProfile.from_row(r) for r in crm_df.to_dict("records")]

        self._by_id: Dict[str, List[int]] = defaultdict(list)
        self._by_account: Dict[str, List[int]] = defaultdict(list)
        self._by_processor: Dict[str, List[int]] = defaultdict(list)
        self._by_name: Dict[str, List[int]] = defaultdict(list)
        for pos, p in enumerate(self._crm):
            self._by_id[p.crm_id].append(pos)
            self._by_account[p.crm_account_number].append(pos)
            self._by_processor[p.crm_gocardless_id].append(pos)
            self._by_name[p.crm_name].append(pos)

        self._accounts_by_mandate: Dict[str, List[str]] = defaultdict(list)
        for r in elevate_df.to_dict("records"):
            self._accounts_by_mandate[_text(r.get("elevate_mandate_reference"))].append(
                _text(r.get("elevate_account_number"))
            )

    @classmethod
    def from_store(cls, engine: Engine) -> "ReferenceIndex":
        return cls(load_crm_accounts(engine), load_elevate_accounts(engine))

    def __len__(self) -> int:
        return len(self._crm)

    def _first_match(self, positions: Iterable[int]) -> Optional[CrmProfile]:
        for pos in positions:
            profile = self._crm[pos]
            if profile.is_match():
                return profile
        return None

    def crm_by_id_or_account_number(self, key: str) -> Optional[CrmProfile]:
        positions = set(self._by_id.get(key, ())) | set(self._by_account.get(key, ()))
        return self._first_match(sorted(positions))

    def crm_by_bridged_mandate_reference(self, mandate_id: str) -> Optional[CrmProfile]:
        for account_number in self._accounts_by_mandate.get(mandate_id, ()):
            profile = self._first_match(self._by_account.get(account_number, ()))
            if profile is not None:
                return profile
        return None

    def crm_by_processor_id(self, customer_id: str) -> Optional[CrmProfile]:
        return self._first_match(self._by_processor.get(customer_id, ()))

    def crm_by_exact_name(self, name: str) -> Optional[CrmProfile]:
        return self._first_match(self._by_name.get(name, ()))


# ======================================================
# CASCADE
# ======================================================

@dataclass(frozen=True)
class MatchStrategy:
    method_id: str
    key: Callable[[Mapping[str, object]], str]
    lookup: Callable[[ReferenceIndex, str], Optional[CrmProfile]]
    description: str
    # skip on a whitespace-only key, not just an empty one
    skip_blank: bool = False

    def should_attempt(self, raw_key: str) -> bool:
        check = raw_key.strip() if self.skip_blank else raw_key
        return check != ""


def _event_name(event: Mapping[str, object]) -> str:
    return full_customer_name(
        _text(event.get("customers_given_name", "")),
        _text(event.get("customers_family_name", "")),
    )


MATCH_STRATEGIES: Tuple[MatchStrategy, ...] = (
    MatchStrategy(
        method_id="M1_LEAD_ID",
        key=lambda e: _text(e.get("customers_metadata_leadID", "")),
        lookup=lambda ref, k: ref.crm_by_id_or_account_number(k),
        description="customers_metadata_leadID is a CRM id or CRM account number",
        skip_blank=True,
    ),
    MatchStrategy(
        method_id="M2_MANDATE_BRIDGE",
        key=lambda e: _text(e.get("mandates_id", "")),
        lookup=lambda ref, k: ref.crm_by_bridged_mandate_reference(k),
        description="mandates_id is an Elevate mandate reference bridging to a CRM account number",
    ),
    MatchStrategy(
        method_id="M3_CUSTOMER_ID",
        key=lambda e: _text(e.get("customers_id", "")),
        lookup=lambda ref, k: ref.crm_by_processor_id(k),
        description="customers_id is the CRM GoCardless id",
    ),
    MatchStrategy(
        method_id="M4_CUSTOMER_NAME",
        key=_event_name,
        lookup=lambda ref, k: ref.crm_by_exact_name(k),
        description="given + family name equals the CRM name",
    ),
)


def resolve_event(
    event: Mapping[str, object],
    reference: ReferenceIndex,
    strategies: Tuple[MatchStrategy, ...] = MATCH_STRATEGIES,
) -> Resolution:
    attempted: List[str] = []
    diagnostics: List[str] = []

    for strategy in strategies:
        raw_key = strategy.key(event)
        if not strategy.should_attempt(raw_key):
            continue

        key = _clean(raw_key)
        attempted.append(strategy.method_id)
        try:
            profile = strategy.lookup(reference, key)
        except Exception as e:
            diagnostics.append(
                f"{strategy.method_id} lookup failed for event {_text(event.get('id', ''))} "
                f"(key={key!r}): {e}"
            )
            continue

        if profile is not None and profile.is_match():
            return Resolution(profile, strategy.method_id, tuple(attempted), tuple(diagnostics))

    return Resolution(EMPTY_PROFILE, UNMATCHED, tuple(attempted), tuple(diagnostics))
