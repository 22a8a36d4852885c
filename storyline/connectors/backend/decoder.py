"""STORYLINE — Raw Campaign Payload → Typed Campaign Decoder.

The backend is inconsistent about wrapping a single ``details`` object in
an array. Each campaign kind therefore has an ordered list of parse
attempts; the first attempt that succeeds wins. Anything that cannot be
decoded is logged and dropped so one bad campaign never breaks the feed.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Type

from pydantic import BaseModel, ValidationError

from storyline.models.campaign_models import (
    BannerDetails,
    BottomSheetDetails,
    Campaign,
    CampaignResponse,
    CsatDetails,
    FloaterDetails,
    ModalDetails,
    PipDetails,
    ReelDetails,
    StoryDetails,
    SurveyDetails,
    TooltipDetails,
    WidgetDetails,
)
from storyline.core.logging import get_logger

logger = get_logger("campaigns.decoder")

ParseAttempt = Callable[[Any], Optional[BaseModel]]

DISCRIMINANT = "campaign_type"

DETAILS_BY_TYPE: Dict[str, Type[BaseModel]] = {
    "BAN": BannerDetails,
    "MOD": ModalDetails,
    "WID": WidgetDetails,
    "FLT": FloaterDetails,
    "SUR": SurveyDetails,
    "STR": StoryDetails,
    "REEL": ReelDetails,
    "BTS": BottomSheetDetails,
    "CSAT": CsatDetails,
    "PIP": PipDetails,
    "TTP": TooltipDetails,
}

# Rendered inside the host layout rather than as an overlay
INLINE_TYPES = frozenset({"WID", "STR"})


# ── Parse Attempts ──


def as_object(model: Type[BaseModel]) -> ParseAttempt:
    """Parse the value as a single structured object."""

    def attempt(value: Any) -> Optional[BaseModel]:
        if not isinstance(value, dict):
            return None
        try:
            return model.model_validate(value)
        except ValidationError:
            return None

    return attempt


def as_first_element(model: Type[BaseModel]) -> ParseAttempt:
    """Parse the first element of an array; surplus elements are discarded."""

    def attempt(value: Any) -> Optional[BaseModel]:
        if not isinstance(value, list) or not value:
            return None
        if len(value) > 1:
            logger.debug(f"Discarding {len(value) - 1} surplus details elements")
        return as_object(model)(value[0])

    return attempt


def as_story_groups(value: Any) -> Optional[BaseModel]:
    """Stories are a list of groups natively; a bare group is wrapped."""
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list) or not value:
        return None
    try:
        return StoryDetails.model_validate({"groups": value})
    except ValidationError:
        return None


def parse_attempts(campaign_type: str) -> Sequence[ParseAttempt]:
    if campaign_type == "STR":
        return (as_story_groups,)
    model = DETAILS_BY_TYPE[campaign_type]
    return (as_object(model), as_first_element(model))


def first_success(attempts: Iterable[ParseAttempt], value: Any) -> Optional[BaseModel]:
    for attempt in attempts:
        result = attempt(value)
        if result is not None:
            return result
    return None


# ── Decoding ──


def decode_campaign(raw: Any) -> Optional[Campaign]:
    """Decode one raw campaign payload, or return None if it is unusable."""
    if not isinstance(raw, dict):
        logger.debug("Dropping campaign: payload is not an object")
        return None

    campaign_type = raw.get(DISCRIMINANT)
    campaign_id = raw.get("id")
    if campaign_type not in DETAILS_BY_TYPE:
        logger.debug(
            f"Dropping campaign {campaign_id}: unrecognized type {campaign_type!r}",
            extra={"campaign_id": campaign_id},
        )
        return None

    details = first_success(parse_attempts(campaign_type), raw.get("details"))
    if details is None:
        logger.debug(
            f"Dropping {campaign_type} campaign {campaign_id}: details did not decode",
            extra={"campaign_id": campaign_id},
        )
        return None

    try:
        return Campaign.model_validate({**raw, "details": details})
    except ValidationError as e:
        logger.debug(
            f"Dropping {campaign_type} campaign {campaign_id}: {e.error_count()} envelope errors",
            extra={"campaign_id": campaign_id},
        )
        return None


def decode_feed(payload: Any) -> List[Campaign]:
    """Decode a campaign feed response.

    Accepts the full ``CampaignResponse`` envelope or a bare list of
    campaigns. Undecodable campaigns are skipped individually.
    """
    if isinstance(payload, list):
        raw_campaigns: List[Any] = payload
    elif isinstance(payload, dict):
        try:
            raw_campaigns = CampaignResponse.model_validate(payload).campaigns
        except ValidationError:
            logger.warning("Campaign feed envelope did not decode; using raw list")
            campaigns_field = payload.get("campaigns")
            raw_campaigns = campaigns_field if isinstance(campaigns_field, list) else []
    else:
        raw_campaigns = []

    campaigns = [c for c in (decode_campaign(raw) for raw in raw_campaigns) if c]
    skipped = len(raw_campaigns) - len(campaigns)
    logger.info(
        f"Decoded {len(campaigns)} campaigns ({skipped} skipped)"
    )
    return campaigns
