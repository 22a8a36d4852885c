"""STORYLINE — Campaign Models.

One details model per campaign kind. ``Campaign.details`` always carries
exactly one of them; the decoder is the only place that picks which.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SkipValidation, field_validator


class WireModel(BaseModel):
    """Base for backend payloads: tolerant of unknown keys, immutable."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def sanitize_url(url: Optional[str]) -> Optional[str]:
    """Repair asset URLs the backend sometimes sends without a scheme."""
    if not url:
        return None
    if url.startswith("http://") or url.startswith("https://"):
        return url
    fixed = url
    # "xyz.cloudfront.netpip/a.png" -> "xyz.cloudfront.net/pip/a.png"
    if "cloudfront.net" in fixed and "cloudfront.net/" not in fixed:
        fixed = fixed.replace("cloudfront.net", "cloudfront.net/")
    return "https://" + fixed


# ─────────────────────────────────────────────
# SHARED
# ─────────────────────────────────────────────


class Styling(WireModel):
    """Free-form styling block; values are passed through to the view layer."""

    model_config = ConfigDict(frozen=True, extra="allow")


class RedirectionConfig(WireModel):
    key: Optional[str] = None
    page_name: Optional[str] = Field(default=None, alias="pageName")
    type: Optional[str] = None
    url: Optional[str] = None
    value: Optional[str] = None


# ─────────────────────────────────────────────
# VARIANTS
# ─────────────────────────────────────────────


class BannerDetails(WireModel):
    id: Optional[str] = None
    image: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    link: Optional[str] = None
    styling: Optional[Styling] = None


class ModalItem(WireModel):
    name: str
    background_opacity: Optional[str] = Field(default=None, alias="backgroundOpacity")
    border_radius: Optional[str] = Field(default=None, alias="borderRadius")
    link: Optional[str] = None
    redirection: Optional[RedirectionConfig] = None
    size: Optional[str] = None
    url: Optional[str] = None

    @property
    def image_url(self) -> Optional[str]:
        return sanitize_url(self.url)

    @property
    def destination_url(self) -> Optional[str]:
        """Redirection URL wins over the plain link."""
        if self.redirection and self.redirection.url:
            return self.redirection.url
        return self.link or None


class ModalDetails(WireModel):
    id: Optional[str] = None
    name: Optional[str] = None
    modals: List[ModalItem]


class WidgetImage(WireModel):
    id: str
    image: str
    order: int = 0
    link: Optional[Any] = None
    lottie_data: Optional[str] = None


class WidgetDetails(WireModel):
    id: str
    type: str
    width: Optional[float] = None
    height: Optional[float] = None
    widget_images: List[WidgetImage] = Field(default_factory=list)


class FloaterDetails(WireModel):
    id: Optional[str] = None
    image: Optional[str] = None
    link: Optional[str] = None
    height: Optional[float] = None
    width: Optional[float] = None
    position: Optional[str] = None
    styling: Optional[Styling] = None


class SurveyDetails(WireModel):
    id: str
    name: Optional[str] = None
    styling: Dict[str, str] = Field(default_factory=dict)
    survey_question: str = Field(alias="surveyQuestion")
    survey_options: Dict[str, str] = Field(default_factory=dict, alias="surveyOptions")
    has_others: bool = Field(default=False, alias="hasOthers")
    campaign: Optional[str] = None


class StorySlide(WireModel):
    id: str
    parent: Optional[str] = None
    image: Optional[str] = None
    video: Optional[str] = None
    link: Optional[str] = None
    button_text: Optional[str] = None
    order: int = 0


class StoryGroup(WireModel):
    id: str
    name: str
    thumbnail: Optional[str] = None
    ring_color: Optional[str] = Field(default=None, alias="ringColor")
    name_color: Optional[str] = Field(default=None, alias="nameColor")
    order: int = 0
    slides: List[StorySlide] = Field(default_factory=list)


class StoryDetails(WireModel):
    """Stories arrive as a list of groups; this wraps that list."""

    groups: List[StoryGroup]


class Reel(WireModel):
    id: str
    video: str
    order: int = 0
    button_text: Optional[str] = None
    description_text: Optional[str] = None
    likes: int = 0
    thumbnail: Optional[str] = None
    link: Optional[str] = None


class ReelDetails(WireModel):
    id: str
    reels: List[Reel]
    styling: Optional[Styling] = None


class BottomSheetElement(WireModel):
    id: str
    type: str
    order: int = 0
    url: Optional[str] = None
    alignment: Optional[str] = None
    image_link: Optional[str] = Field(default=None, alias="imageLink")
    overlay_button: Optional[bool] = Field(default=None, alias="overlayButton")


class BottomSheetDetails(WireModel):
    id: Optional[str] = Field(default=None, alias="_id")
    name: Optional[str] = None
    corner_radius: Optional[str] = Field(default=None, alias="cornerRadius")
    elements: List[BottomSheetElement] = Field(default_factory=list)
    enable_cross_button: Optional[str] = Field(default=None, alias="enableCrossButton")


class CsatDetails(WireModel):
    id: str
    title: Optional[str] = None
    height: Optional[int] = None
    width: Optional[int] = None
    styling: Optional[Styling] = None
    thankyou_image: Optional[str] = Field(default=None, alias="thankyouImage")
    thankyou_text: Optional[str] = Field(default=None, alias="thankyouText")
    thankyou_description: Optional[str] = Field(default=None, alias="thankyouDescription")
    description_text: Optional[str] = None
    feedback_option: Optional[Dict[str, str]] = None
    link: Optional[str] = None
    high_star_text: Optional[str] = Field(default=None, alias="highStarText")
    low_star_text: Optional[str] = Field(default=None, alias="lowStarText")


class PipDetails(WireModel):
    id: Optional[str] = None
    position: Optional[str] = None
    small_video: Optional[str] = None
    large_video: Optional[str] = None
    height: Optional[int] = None
    width: Optional[int] = None
    link: Optional[str] = None
    campaign: Optional[str] = None
    button_text: Optional[str] = None
    screen: Optional[str] = None

    @field_validator("screen", mode="before")
    @classmethod
    def _screen_as_string(cls, value: Any) -> Any:
        # Backend sends either a screen id (int) or a name
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class Tooltip(WireModel):
    id: Optional[str] = Field(default=None, alias="_id")
    type: Optional[str] = None
    url: Optional[str] = None
    link: Optional[str] = None
    target: Optional[str] = None
    position: Optional[str] = None
    order: Optional[int] = None
    styling: Optional[Styling] = None


class TooltipDetails(WireModel):
    id: Optional[str] = Field(default=None, alias="_id")
    campaign: Optional[str] = None
    name: Optional[str] = None
    tooltips: List[Tooltip] = Field(default_factory=list)
    created_at: Optional[str] = None


CampaignDetails = Union[
    BannerDetails,
    ModalDetails,
    WidgetDetails,
    FloaterDetails,
    SurveyDetails,
    StoryDetails,
    ReelDetails,
    BottomSheetDetails,
    CsatDetails,
    PipDetails,
    TooltipDetails,
]


# ─────────────────────────────────────────────
# ENVELOPES
# ─────────────────────────────────────────────


class Campaign(WireModel):
    """A decoded campaign. ``details`` is never in wire (array) form."""

    id: str
    campaign_type: str
    client_id: Optional[str] = None
    position: Optional[str] = None
    screen: Optional[str] = None
    display_trigger: Optional[bool] = None
    trigger_event: Optional[str] = None
    is_all: Optional[bool] = Field(default=None, alias="isAll")
    is_testing: Optional[bool] = Field(default=None, alias="isTesting")
    priority: Optional[int] = None
    # Validated by the decoder; stored as-is
    details: SkipValidation[CampaignDetails]

    @field_validator("screen", mode="before")
    @classmethod
    def _screen_as_string(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class FeedMetadata(WireModel):
    screen_capture_enabled: Optional[bool] = None
    test_user: Optional[bool] = None


class CampaignResponse(WireModel):
    """Campaign feed envelope. Campaigns stay raw until decoded one by one."""

    user_id: Optional[str] = Field(default=None, alias="userId")
    message_id: Optional[str] = None
    campaigns: List[Any] = Field(default_factory=list)
    metadata: Optional[FeedMetadata] = None
    sent_at: Optional[int] = None
    test_user: Optional[bool] = None


class AccessTokenResponse(WireModel):
    access_token: str
    refresh_token: Optional[str] = None
