"""
Split extracted records into "ready to ban" and "needs more information".
"""

from typing import List, Tuple

from tco_agent.models.decision import ExtractedRecord

REASON_IDENTITY_REQUIRED = "email and username are required"
REASON_AGENCY_REQUIRED = "agencyName is required"
REASON_REFERENCE_REQUIRED = "referenceNumber is required"


def check_required_info(record: ExtractedRecord) -> Tuple[bool, str]:
    """
    Return (True, "") when the record can be sent to the ban API, otherwise
    (False, reason) for the first failing condition:
    identity (username or email) > agency name > reference number.
    """
    decision = record.decision
    if not decision.email and not decision.username:
        return False, REASON_IDENTITY_REQUIRED
    if not decision.agency_name:
        return False, REASON_AGENCY_REQUIRED
    if not decision.reference_number:
        return False, REASON_REFERENCE_REQUIRED
    return True, ""


def partition_by_required_info(
    records: List[ExtractedRecord],
) -> Tuple[List[ExtractedRecord], List[ExtractedRecord]]:
    """
    Partition records into (ready, more_info), both in input order.

    Records in more_info are copies with note set to the failing reason;
    the input records are left untouched.
    """
    ready: List[ExtractedRecord] = []
    more_info: List[ExtractedRecord] = []
    for record in records:
        ok, reason = check_required_info(record)
        if ok:
            ready.append(record)
        else:
            more_info.append(record.model_copy(update={"note": reason}))
    return ready, more_info
