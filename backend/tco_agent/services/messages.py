"""
Reply templates sent back to the issuing authority.

Public API:
  ReplyTemplate                          — the three template names
  build_message(template, record, now)   -> str
  format_identifiers(decision)           -> str
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from tco_agent.errors import InvalidTemplateError
from tco_agent.models.decision import DecisionData, ExtractedRecord


class ReplyTemplate(str, Enum):
    MORE_INFO_REQUIRED = "more_info_required"
    USER_NOT_FOUND = "user_not_found"
    USER_BANNED = "user_banned"


MORE_INFO_REQUIRED_MESSAGE = """\
Subject: TCO removal order – clarification required (Ref: {reference})

Hello {agency},

We received your removal order under Regulation (EU) 2021/784 dated {order_date}. To comply with Article 3, we need more detail before the one-hour deadline can run. Missing information: {missing}.

Please provide:
- the exact URL(s) / message ID(s) or copies of the content;
- the relevant account identifier(s) (username, email, user ID) or profile link;
- the signed removal order (Annex I) including statement of reasons and legal basis;
- the order's reference number and contact for follow-up;
- whether confidentiality under Article 11(3) applies.

Under Article 3(8), the one-hour deadline resumes once we receive the clarification. We will process the order immediately and confirm via Annex II if requested.
"""

USER_NOT_FOUND_MESSAGE = """\
Subject: TCO removal order – content not located (Ref: {reference})

Hello {agency},

We tried to act on your removal order under Article 3 but could not locate the account/content using the provided identifiers ({identifiers}). To resume the one-hour deadline (Article 3(8)), please send:

- exact URL(s) or message ID(s);
- current profile link or user ID and any recent username/email changes;
- screenshot or copy of the material with time/timezone captured;
- whether confidentiality under Article 11(3) applies.

No further action has been taken until we receive the above.
"""

USER_BANNED_MESSAGE = """\
Subject: TCO removal order – action completed (Ref: {reference})

Hello {agency},

We executed the removal order under Article 3 of Regulation (EU) 2021/784. Access to the reported account/content ({identifiers}) has been disabled across our service as of {action_time} UTC.

We have preserved the removed content and related data for six months in line with Article 6 and can extend retention on request for ongoing proceedings. If you need confirmation in the Annex II format, please let us know.

Thank you.
"""

DEFAULT_MISSING_INFO = "Additional identifiers required under Article 3(4) to locate the content."


def resolve_template(template: Union[ReplyTemplate, str]) -> ReplyTemplate:
    """Map a template name onto ReplyTemplate or raise InvalidTemplateError."""
    try:
        return ReplyTemplate(template)
    except ValueError:
        raise InvalidTemplateError(f"invalid message template: {template!r}")


def fallback_value(value: str, fallback: str) -> str:
    if not (value or "").strip():
        return fallback
    return value


def format_identifiers(decision: DecisionData) -> str:
    """"username: X / email: Y", omitting absent parts."""
    parts = []
    if decision.username:
        parts.append(f"username: {decision.username}")
    if decision.email:
        parts.append(f"email: {decision.email}")
    if not parts:
        return "no user identifier provided"
    return " / ".join(parts)


def build_message(
    template: Union[ReplyTemplate, str],
    record: ExtractedRecord,
    now: Optional[datetime] = None,
) -> str:
    """Render the reply for one record."""
    template = resolve_template(template)
    decision = record.decision

    agency = fallback_value(decision.agency_name, "competent authority")
    reference = fallback_value(decision.reference_number, "N/A")

    if template is ReplyTemplate.MORE_INFO_REQUIRED:
        return MORE_INFO_REQUIRED_MESSAGE.format(
            reference=reference,
            agency=agency,
            order_date=fallback_value(decision.date, "not provided"),
            missing=fallback_value(record.note.strip(), DEFAULT_MISSING_INFO),
        )

    identifiers = format_identifiers(decision)

    if template is ReplyTemplate.USER_NOT_FOUND:
        return USER_NOT_FOUND_MESSAGE.format(
            reference=reference,
            agency=agency,
            identifiers=identifiers,
        )

    now = now or datetime.now(timezone.utc)
    action_time = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return USER_BANNED_MESSAGE.format(
        reference=reference,
        agency=agency,
        identifiers=identifiers,
        action_time=action_time,
    )
