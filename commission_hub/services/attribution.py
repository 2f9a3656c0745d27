import logging
from typing import NamedTuple, Optional

from commission_hub.models import User
from commission_hub.models.user import ROLE_INFLUENCER
from commission_hub.services.directory import find_user_by_coupon, find_user_by_id

logger = logging.getLogger(__name__)


class Attribution(NamedTuple):
    influencer: User
    manager: Optional[User]


def resolve_coupon(code) -> Optional[Attribution]:
    """Influencer owning ``code`` plus their manager as of right now.

    None means the order is not attributable, which is a normal outcome.
    """
    code = (code or '').strip()
    if not code:
        return None

    influencer = find_user_by_coupon(code)
    if influencer is None:
        logger.info('No influencer found for coupon %s', code)
        return None
    if influencer.role != ROLE_INFLUENCER or not influencer.is_active:
        logger.info('Coupon %s belongs to %s, which cannot earn sale commission', code, influencer.id)
        return None

    manager = find_user_by_id(influencer.manager_id)
    return Attribution(influencer, manager)


def is_coupon_available(code):
    return find_user_by_coupon((code or '').strip()) is None
