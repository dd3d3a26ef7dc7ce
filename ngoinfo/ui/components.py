"""
UI kit primitives rendered to accessible HTML.

Closed variant sets:
- Button: primary | secondary | link, sizes sm | md | lg
- Banner: info | success | warning | error, optionally dismissible
- Input: text | email | password | number | url | textarea | select
- Card: elevation and padding none | sm | md | lg

Every component is an immutable pydantic model; render() returns escaped
markup from the templates directory.
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup
from pydantic import BaseModel, ConfigDict, Field, model_validator

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

# WCAG 2.5.5 minimum target size
MIN_TAP_TARGET_PX = 44
TAP_TARGET_CLASS = "ngo-tap-target"

_ENV: Optional[Environment] = None


def _get_env() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _ENV


def render_template(name: str, **context) -> Markup:
    try:
        template = _get_env().get_template(name)
    except TemplateNotFound as exc:
        raise RuntimeError(f"UI template '{name}' not found.") from exc
    return Markup(template.render(**context).strip())


class ButtonVariant(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    LINK = "link"


class ButtonSize(str, Enum):
    SM = "sm"
    MD = "md"
    LG = "lg"


class BannerVariant(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class InputVariant(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    PASSWORD = "password"
    NUMBER = "number"
    URL = "url"
    TEXTAREA = "textarea"
    SELECT = "select"


class CardElevation(str, Enum):
    NONE = "none"
    SM = "sm"
    MD = "md"
    LG = "lg"


class CardPadding(str, Enum):
    NONE = "none"
    SM = "sm"
    MD = "md"
    LG = "lg"


def _join(*classes: Optional[str]) -> str:
    return " ".join(c for c in classes if c)


class Button(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1)
    variant: ButtonVariant = ButtonVariant.PRIMARY
    size: ButtonSize = ButtonSize.MD
    full_width: bool = False
    disabled: bool = False
    type: str = "button"
    class_name: str = ""

    def classes(self) -> str:
        return _join(
            "ngo-button",
            f"ngo-button--{self.variant.value}",
            f"ngo-button--{self.size.value}",
            TAP_TARGET_CLASS,
            "ngo-button--full-width" if self.full_width else None,
            self.class_name,
        )

    def render(self) -> Markup:
        return render_template("button.html", button=self, classes=self.classes())


class Banner(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    variant: BannerVariant = BannerVariant.INFO
    dismissible: bool = False
    dismissed: bool = False
    class_name: str = ""

    @property
    def role(self) -> str:
        return "alert" if self.variant in (BannerVariant.ERROR, BannerVariant.WARNING) else "status"

    def classes(self) -> str:
        return _join("ngo-banner", f"ngo-banner--{self.variant.value}", self.class_name)

    def dismiss(self) -> "Banner":
        if not self.dismissible:
            return self
        return self.model_copy(update={"dismissed": True})

    def render(self) -> Markup:
        if self.dismissed:
            return Markup("")
        return render_template("banner.html", banner=self, classes=self.classes())


class SelectOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class Input(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    variant: InputVariant = InputVariant.TEXT
    label: Optional[str] = None
    value: Optional[str] = None
    placeholder: Optional[str] = None
    helper_text: Optional[str] = None
    error: bool = False
    error_message: Optional[str] = None
    required: bool = False
    full_width: bool = False
    rows: int = Field(default=4, ge=1)
    options: List[SelectOption] = Field(default_factory=list)
    class_name: str = ""

    @model_validator(mode="after")
    def _select_needs_options(self):
        if self.variant == InputVariant.SELECT and not self.options:
            raise ValueError("select inputs require options")
        return self

    @property
    def error_id(self) -> Optional[str]:
        if self.error and self.error_message:
            return f"{self.id}-error"
        return None

    @property
    def helper(self) -> Optional[str]:
        if self.error and self.error_message:
            return self.error_message
        return self.helper_text

    def classes(self) -> str:
        return _join(
            "ngo-input",
            "ngo-input--error" if self.error else None,
            "ngo-input--full-width" if self.full_width else None,
            self.class_name,
        )

    def wrapper_classes(self) -> str:
        return _join("ngo-input-wrapper", "ngo-input-wrapper--full-width" if self.full_width else None)

    def render(self) -> Markup:
        return render_template("input.html", field=self, classes=self.classes())


class Card(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: str
    header: Optional[str] = None
    footer: Optional[str] = None
    elevation: CardElevation = CardElevation.SM
    padding: CardPadding = CardPadding.MD
    class_name: str = ""

    def classes(self) -> str:
        return _join(
            "ngo-card",
            f"ngo-card--elevation-{self.elevation.value}",
            f"ngo-card--padding-{self.padding.value}",
            self.class_name,
        )

    def render(self) -> Markup:
        return render_template("card.html", card=self, classes=self.classes())


def render_showcase() -> Markup:
    """Every variant of every primitive on one page."""
    buttons = [
        Button(label=f"{variant.value.title()} {size.value}", variant=variant, size=size).render()
        for variant in ButtonVariant
        for size in ButtonSize
    ]
    banners = [
        Banner(message=f"This is a {variant.value} banner.", variant=variant, dismissible=True).render()
        for variant in BannerVariant
    ]
    inputs = [
        Input(id="sandbox-text", label="Organization name", placeholder="Acme Foundation").render(),
        Input(id="sandbox-email", variant=InputVariant.EMAIL, label="Email", error=True, error_message="Email is required").render(),
        Input(id="sandbox-password", variant=InputVariant.PASSWORD, label="Password").render(),
        Input(id="sandbox-number", variant=InputVariant.NUMBER, label="Year established").render(),
        Input(id="sandbox-url", variant=InputVariant.URL, label="Website", helper_text="Include https://").render(),
        Input(id="sandbox-textarea", variant=InputVariant.TEXTAREA, label="Mission").render(),
        Input(
            id="sandbox-select",
            variant=InputVariant.SELECT,
            label="Staff count",
            options=[SelectOption(value="1-5", label="1-5 staff"), SelectOption(value="6-20", label="6-20 staff")],
        ).render(),
    ]
    cards = [
        Card(header=f"Elevation {elevation.value}", body="Card content", elevation=elevation).render()
        for elevation in CardElevation
    ]
    return render_template("showcase.html", buttons=buttons, banners=banners, inputs=inputs, cards=cards)
