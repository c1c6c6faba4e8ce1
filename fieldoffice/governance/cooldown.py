"""Probation gate for promotion requests"""

import logging
import math
import re
from datetime import datetime, timedelta
from typing import Optional, Sequence

from fieldoffice.governance.errors import CooldownActive
from fieldoffice.governance.models import Member, PromotionRule
from fieldoffice.utils.constants import PROMOTION_RULE_OFFSET

logger = logging.getLogger('FieldOffice')

# "[24 hours]", "[1 hour]" and the legacy "[24 часа]" / "[48 часов]" forms
PROBATION_PATTERN = re.compile(r'\[(\d+)\s*(?:hours?|час(?:а|ов)?)\]', re.IGNORECASE)

ONE_HOUR = timedelta(hours=1)

def parse_probation_hours(probation: Optional[str]) -> Optional[int]:
    """Extract the probation length in hours from a free-text rule

    Returns None when the text carries no recognisable hour count; callers
    treat that as "no cooldown".
    """
    if not probation:
        return None
    match = PROBATION_PATTERN.search(probation)
    if not match:
        logger.debug(f"No probation hours found in {probation!r}")
        return None
    return int(match.group(1))

def promotion_rule_for(rank: int, rules: Sequence[PromotionRule]) -> Optional[PromotionRule]:
    """Rule governing promotion out of rank, if the table has one"""
    index = rank - PROMOTION_RULE_OFFSET
    if 0 <= index < len(rules):
        return rules[index]
    return None

def remaining_cooldown(member: Member,
                       rules: Sequence[PromotionRule],
                       now: datetime) -> Optional[timedelta]:
    """Time left before member may request a promotion, or None if eligible"""
    rule = promotion_rule_for(member.rank, rules)
    if rule is None or member.last_promotion_date is None:
        return None

    hours = parse_probation_hours(rule.probation) or 0
    if hours <= 0:
        return None

    remaining = timedelta(hours=hours) - (now - member.last_promotion_date)
    if remaining <= timedelta(0):
        return None
    return remaining

def check_promotion_cooldown(member: Member,
                             rules: Sequence[PromotionRule],
                             now: datetime) -> None:
    """Raise CooldownActive if member is still on probation"""
    remaining = remaining_cooldown(member, rules, now)
    if remaining is not None:
        raise CooldownActive(remaining_hours=math.ceil(remaining / ONE_HOUR))
