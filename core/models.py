"""
core/models.py -- Domain dataclasses for CMS-driven forms.

The CMS describes each form as a list of attribute objects. Only the parts
the auth screens render are kept: marker (the input name), a localized title,
a type hint, the display position and whether the CMS marks it required.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Auth provider and form markers configured in the CMS project.
AUTH_PROVIDER_MARKER = "email"
SIGNUP_FORM_MARKER = "sign_up"
LOGIN_FORM_MARKER = "sign_in"


@dataclass(frozen=True)
class FormField:
    marker: str
    title: str
    type: str = "string"
    position: int = 0
    required: bool = False

    @classmethod
    def from_attribute(cls, attribute: dict[str, Any], lang_code: str) -> FormField:
        """Build a FormField from one CMS form attribute.

        localizeInfos arrives either already resolved for the requested
        language ({"title": ...}) or keyed by language code
        ({"en_US": {"title": ...}}). Both shapes are accepted; the marker is
        the fallback title.

        Raises ValueError when the attribute has no marker -- a field without
        a name cannot be submitted, so the whole schema is unusable.
        """
        marker = attribute.get("marker")
        if not marker:
            raise ValueError(f"Form attribute without a marker: {attribute!r}")

        localize = attribute.get("localizeInfos") or {}
        if lang_code in localize and isinstance(localize[lang_code], dict):
            localize = localize[lang_code]
        title = localize.get("title") or marker

        validators = attribute.get("validators") or {}
        required = bool((validators.get("requiredValidator") or {}).get("strict", False))

        return cls(
            marker=str(marker),
            title=str(title),
            type=str(attribute.get("type") or "string"),
            position=int(attribute.get("position") or 0),
            required=required,
        )


def parse_form_attributes(form: Any, lang_code: str) -> list[FormField]:
    """Return the form's fields ordered by position.

    Raises ValueError if the form has no attribute list.
    """
    if not isinstance(form, dict) or not isinstance(form.get("attributes"), list):
        raise ValueError("Form response has no attributes list")
    fields = [FormField.from_attribute(attr, lang_code) for attr in form["attributes"]]
    return sorted(fields, key=lambda f: f.position)
