"""
Eligibility payload mapping.

Turns the backend's verify-eligibility response into an EligibilityResult
whose list fields are always lists, whatever the backend sent.
"""

from datetime import datetime
from typing import Any, Optional, Union

import structlog

from .date_parser import to_iso
from .models import CriteriaResults, Eligibility, EligibilityResult, Notice

logger = structlog.get_logger(__name__)


# Notices under this hashtag are informational; eligibility is not checked
GENERAL_CATEGORY_TAG = "#일반"

# missing_info substrings -> profile field ids, first match wins
MISSING_INFO_FIELD_MAP = {
    "gpa": "gpa",
    "grade": "grade",
    "major": "major",
    "income": "income_bracket",
    "income_bracket": "income_bracket",
    "military": "military_service",
    "military_service": "military_service",
    "gender": "gender",
    "language": "languageScores",
    "language_scores": "languageScores",
}

FIELD_LABELS = {
    "gpa": "학점",
    "grade": "학년",
    "major": "전공",
    "income_bracket": "소득 분위",
    "military_service": "병역",
    "gender": "성별",
    "languageScores": "어학 점수",
}

UNKNOWN_FIELD_LABEL = "프로필 정보"


def _as_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _resolve_eligibility(payload: dict) -> Optional[Eligibility]:
    explicit = payload.get("eligibility")
    if isinstance(explicit, str):
        try:
            return Eligibility(explicit.strip().upper())
        except ValueError:
            logger.warning("unknown_eligibility_value", value=explicit)

    legacy = payload.get("eligible")
    if legacy is True:
        return Eligibility.ELIGIBLE
    if legacy is False:
        return Eligibility.INELIGIBLE
    return None


def _resolve_reasons(payload: dict) -> list[str]:
    human = _as_list(payload.get("reasons_human"))
    if human:
        return human
    if isinstance(payload.get("reasons"), list):
        return _as_list(payload.get("reasons"))
    reason = payload.get("reason")
    if isinstance(reason, str) and reason.strip():
        return [reason]
    return []


def map_eligibility(
    payload: Any,
    notice_id: Union[str, int],
    now: Optional[datetime] = None,
) -> EligibilityResult:
    """
    Map a backend eligibility payload to the display contract.

    Args:
        payload: Raw JSON response (any shape)
        notice_id: Notice the verdict belongs to
        now: Mapping time stamped into checked_at

    Returns:
        EligibilityResult, well-formed even for empty or malformed payloads
    """
    data = payload if isinstance(payload, dict) else {}
    if not isinstance(payload, dict):
        logger.warning("eligibility_payload_not_object", notice_id=str(notice_id), type=type(payload).__name__)

    criteria = data.get("criteria_results")
    if not isinstance(criteria, dict):
        criteria = {}

    return EligibilityResult(
        notice_id=str(notice_id),
        eligibility=_resolve_eligibility(data),
        checked_at=to_iso(now or datetime.now()),
        reasons=_resolve_reasons(data),
        criteria_results=CriteriaResults(
            pass_=_as_list(criteria.get("pass")),
            fail=_as_list(criteria.get("fail")),
            verify=_as_list(criteria.get("verify")),
        ),
        missing_info=_as_list(data.get("missing_info")),
        reason_codes=_as_list(data.get("reason_codes")),
        raw=payload,
    )


def needs_eligibility_check(notice: Union[Notice, dict, None]) -> bool:
    """Eligibility is verified for every notice except general-category ones."""
    if notice is None:
        return False
    if isinstance(notice, dict):
        notice = Notice.from_dict(notice)
    return (notice.hashtags_ai or "").strip() != GENERAL_CATEGORY_TAG


def outstanding_missing_info(result: EligibilityResult) -> list[str]:
    """
    Missing-info items not already covered by a "verify" criterion.

    Overlap is a case-insensitive substring match in either direction.
    """
    verify = [item.lower() for item in result.criteria_results.verify]
    outstanding = []
    for item in result.missing_info:
        lowered = item.lower()
        if any(lowered in v or v in lowered for v in verify):
            continue
        outstanding.append(item)
    return outstanding


def missing_profile_fields(result: EligibilityResult) -> list[tuple[str, Optional[str], str]]:
    """
    Map outstanding missing-info items to profile fields.

    Returns:
        (item, field_id or None, Korean label) per outstanding item
    """
    mapped = []
    for item in outstanding_missing_info(result):
        lowered = item.lower()
        field_id = next(
            (fid for alias, fid in MISSING_INFO_FIELD_MAP.items() if alias in lowered),
            None,
        )
        label = FIELD_LABELS.get(field_id, field_id) if field_id else UNKNOWN_FIELD_LABEL
        mapped.append((item, field_id, label))
    return mapped
