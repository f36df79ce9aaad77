"""
Prompt assembly for the generation API
Maps user-selected attributes to descriptive phrases and joins them into one prompt
"""
import re
from typing import Optional

from app.models.generation import PromptOptions, FormSelections, PromptAssemblyResult, ResolvedPrompt

# =============================================================================
# MAPPING TABLES
# =============================================================================

PROMPT_MAPPINGS = {
    "skinTone": {
        "light": "fair-skinned",
        "fair": "fair-skinned",
        "pale": "fair-skinned",
        "medium": "medium-skinned",
        "tan": "medium-skinned",
        "olive": "olive-toned",
        "dark": "dark-skinned",
        "deep": "dark-skinned",
    },
    "styleType": {
        "street": "street fashion",
        "studio": "studio photography",
        "editorial": "editorial magazine style",
        "outdoor": "outdoor natural light",
    },
    "ageGroup": {
        "children": "child",
        "child": "child",
        "kid": "child",
        "kids": "child",
        "youth": "young adult",
        "young": "young adult",
        "teen": "teen",
        "teenager": "teen",
        "adult": "adult",
        "middle-aged": "middle-aged",
        "middle": "middle-aged",
        "senior": "elderly",
        "elderly": "elderly",
    },
}

ENVIRONMENT_DESCRIPTORS = {
    "studio": "studio lighting with neutral background",
    "outdoor": "outdoors in natural daylight",
    "urban": "urban city backdrop",
}

MODEL_TYPE_DESCRIPTORS = {
    "fashion": "fashion editorial setting",
    "portrait": "portrait photography style",
    "street": "street fashion setting",
}

STYLE_DESCRIPTORS = {
    "streetwear": "streetwear outfit",
    "formal": "tailored formal look",
    "casual": "casual everyday style",
    "sporty": "sporty athleisure wear",
}

ASPECT_RATIO_DESCRIPTORS = {
    "1:1": "a square aspect ratio",
    "3:4": "a portrait aspect ratio",
    "4:5": "a portrait aspect ratio",
    "9:16": "a vertical portrait aspect ratio",
    "16:9": "a widescreen landscape aspect ratio",
}

GARMENT_CLAUSE = "wearing the uploaded garment, garment clearly visible"
CLOSING_CLAUSE = "neutral background, professional lighting, crisp details"

_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# HELPERS
# =============================================================================

def normalize_token(value: Optional[str]) -> Optional[str]:
    """Trim and lower-case; empty strings count as absent"""
    if not value:
        return None
    trimmed = value.strip()
    return trimmed.lower() if trimmed else None


def _map_attribute(category: str, value: Optional[str]) -> Optional[str]:
    normalized = normalize_token(value)
    if not normalized:
        return None
    return PROMPT_MAPPINGS[category].get(normalized)


def _describe(table: dict, value: Optional[str]) -> Optional[str]:
    normalized = normalize_token(value)
    if not normalized:
        return None
    return table.get(normalized)


def _describe_style(style: Optional[str]) -> Optional[str]:
    fallback = f"{style} outfit" if style else None
    normalized = normalize_token(style)
    if not normalized:
        return fallback
    return STYLE_DESCRIPTORS.get(normalized, fallback)


def _describe_aspect_ratio(aspect_ratio: Optional[str]) -> Optional[str]:
    if not aspect_ratio:
        return None
    trimmed = aspect_ratio.strip()
    if not trimmed:
        return None
    return ASPECT_RATIO_DESCRIPTORS.get(trimmed, f"{trimmed} aspect ratio")


def _prefer(form_value: Optional[str], option_value: Optional[str]) -> Optional[str]:
    # Form values win whenever present, even if empty
    return form_value if form_value is not None else option_value


# =============================================================================
# ASSEMBLY
# =============================================================================

def assemble_prompt(
    options: PromptOptions,
    form_selections: Optional[FormSelections] = None,
) -> PromptAssemblyResult:
    form = form_selections or FormSelections()

    gender = normalize_token(_prefer(form.gender, options.gender))
    age_group = normalize_token(_prefer(form.age_group, options.age_group))
    skin_tone = normalize_token(_prefer(form.skin_tone, options.skin_tone))
    style_type = normalize_token(_prefer(form.style_type, options.style_type))
    aspect_ratio = _prefer(form.aspect_ratio, options.aspect_ratio)

    age_descriptor = _map_attribute("ageGroup", age_group)
    tone_descriptor = _map_attribute("skinTone", skin_tone)
    style_descriptor = _map_attribute("styleType", style_type)
    environment_descriptor = _describe(ENVIRONMENT_DESCRIPTORS, options.environment)
    model_type_descriptor = _describe(MODEL_TYPE_DESCRIPTORS, options.model_type)
    fallback_style = _describe_style(options.style)

    subject_parts = []
    if age_descriptor:
        subject_parts.append(age_descriptor)
    elif age_group:
        subject_parts.append(age_group)
    if gender:
        subject_parts.append(gender)
    subject_label = f"{' '.join(subject_parts)} model" if subject_parts else "model"

    if tone_descriptor:
        tone_clause = f"with {tone_descriptor} skin"
    elif skin_tone:
        tone_clause = f"with {skin_tone} skin tone"
    else:
        tone_clause = None

    lead_clause = f"Full-body {subject_label} {tone_clause}" if tone_clause else f"Full-body {subject_label}"

    photo_descriptors = [
        descriptor
        for descriptor in (style_descriptor or fallback_style, model_type_descriptor, environment_descriptor)
        if descriptor
    ]
    aspect_descriptor = _describe_aspect_ratio(aspect_ratio)

    segments = [f"{lead_clause}, {GARMENT_CLAUSE}"]
    if photo_descriptors:
        segments.append(", ".join(photo_descriptors))
    if aspect_descriptor:
        segments.append(f"Shot in {aspect_descriptor}")
    segments.append(CLOSING_CLAUSE)

    prompt = _WHITESPACE.sub(" ", ", ".join(segments)).strip()

    # Environment, model type and aspect ratio pass through raw without being reported
    missing = []
    if skin_tone and not tone_descriptor:
        missing.append("skinTone")
    if style_type and not style_descriptor:
        missing.append("styleType")
    if age_group and not age_descriptor:
        missing.append("ageGroup")

    return PromptAssemblyResult(
        prompt=prompt,
        resolved=ResolvedPrompt(
            age=age_descriptor or age_group,
            gender=gender,
            skin_tone=tone_descriptor or skin_tone,
            style=style_descriptor or fallback_style,
            environment=environment_descriptor or options.environment,
            model_type=model_type_descriptor or options.model_type,
            aspect_ratio=aspect_descriptor or aspect_ratio,
        ),
        missing=missing,
    )
