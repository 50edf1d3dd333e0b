"""
Prompt construction for document generation and integration.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import GeneratorSettings, ImageEmbedFrequency


@dataclass(frozen=True)
class PromptPreset:
    """A built-in document style.

    Attributes:
        name: Preset identifier used on the command line.
        prompt: Generation prompt body (the language instruction is appended).
        integration_prompt: Prompt used to merge per-segment documents.
        section_label: Heading label for each document in the integration request.
    """

    name: str
    prompt: str
    integration_prompt: str
    section_label: str = "Document"


PRESETS = {
    "general": PromptPreset(
        name="general",
        prompt=(
            "Please analyze the uploaded video(s) and create a comprehensive document "
            "based on the content. The document should include:\n\n"
            "1. Overview of the content\n"
            "2. Key points and important information\n"
            "3. Step-by-step instructions or procedures if applicable\n"
            "4. Technical details and specifications\n"
            "5. Any relevant notes or recommendations"
        ),
        integration_prompt=(
            "Please integrate the following documents into one comprehensive, cohesive "
            "document. Ensure proper flow, eliminate redundancy, organize the content "
            "logically, and maintain consistency throughout."
        ),
    ),
    "manual": PromptPreset(
        name="manual",
        prompt=(
            "Please analyze the uploaded video(s) and create a comprehensive manual "
            "document. The document should include:\n\n"
            "1. Overview of the content\n"
            "2. Step-by-step instructions for all procedures shown\n"
            "3. Key points and important notes\n"
            "4. Troubleshooting tips where applicable"
        ),
        integration_prompt=(
            "Please integrate the following manual documents into one comprehensive, "
            "cohesive manual. Ensure proper flow, eliminate redundancy, and organize the "
            "content logically."
        ),
    ),
    "specification": PromptPreset(
        name="specification",
        prompt=(
            "Please analyze the uploaded video(s) and create a detailed specification "
            "document. The document should include:\n\n"
            "1. System overview and architecture\n"
            "2. Functional specifications\n"
            "3. Technical requirements\n"
            "4. Interface specifications\n"
            "5. Performance criteria\n"
            "6. Implementation details"
        ),
        integration_prompt=(
            "Please integrate the following specification documents into one "
            "comprehensive, cohesive specification. Ensure technical consistency, proper "
            "organization, and eliminate redundancy."
        ),
        section_label="Specification Part",
    ),
}

_SCREENSHOT_FORMAT = (
    "please include screenshot references using this exact format: [Screenshot: XX:XXs] "
    "where XX:XX is the timestamp in MM:SS format (e.g., [Screenshot: 00:14s], "
    "[Screenshot: 01:23s])."
)

IMAGE_INSTRUCTIONS = {
    ImageEmbedFrequency.MINIMAL: (
        "\n\nIMPORTANT: When describing the most critical visual elements or key points in "
        f"the document, {_SCREENSHOT_FORMAT} Use these references sparingly, only for the "
        "most important moments that are essential for understanding."
    ),
    ImageEmbedFrequency.MODERATE: (
        "\n\nIMPORTANT: When describing visual elements or important points in the "
        f"document, {_SCREENSHOT_FORMAT} Use these references to mark key moments that "
        "would benefit from visual representation."
    ),
    ImageEmbedFrequency.DETAILED: (
        "\n\nIMPORTANT: When describing visual elements, UI components, or detailed "
        f"explanations in the document, {_SCREENSHOT_FORMAT} Use these references "
        "frequently to provide detailed visual context for readers."
    ),
}

# Keep screenshot markers intact when merging segment documents
_KEEP_SCREENSHOTS_NOTE = (
    "\n\nKeep every [Screenshot: XX:XXs] reference exactly as written, next to the content "
    "it illustrates."
)


def get_preset(name: str) -> PromptPreset:
    """Look up a built-in preset by name (case-insensitive).

    Raises:
        ValueError: If no preset has that name.
    """
    try:
        return PRESETS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown prompt preset: {name}. Must be one of {list(PRESETS)}") from None


def language_name(language: str) -> str:
    """Display name of an output language ("english" -> "English")."""
    language = (language or "").strip()
    if not language:
        return "Japanese"
    return language.title()


def get_image_instruction(frequency: ImageEmbedFrequency | str) -> str:
    return IMAGE_INSTRUCTIONS[ImageEmbedFrequency.from_string(frequency)]


def build_generation_prompt(settings: GeneratorSettings) -> str:
    """
    Build the prompt sent along with the uploaded video(s).

    A custom prompt is used verbatim; otherwise the preset prompt is followed
    by a language instruction. With image embedding enabled the screenshot
    instruction for the configured frequency is appended in both cases.
    """
    if settings.custom_prompt:
        prompt = settings.custom_prompt
    else:
        preset = get_preset(settings.prompt_preset)
        prompt = (
            f"{preset.prompt}\n\nPlease write the document in "
            f"{language_name(settings.language)} and format it in a clear, professional manner."
        )

    if settings.embed_images:
        prompt += get_image_instruction(settings.image_embed_frequency)
    return prompt


def _format_documents(documents: list[str], label: str) -> str:
    return "\n".join(f"=== {label} {i + 1} ===\n{doc}\n" for i, doc in enumerate(documents))


def build_integration_prompt(documents: list[str], settings: GeneratorSettings) -> str:
    """Build the text-only prompt that merges several documents into one."""
    if settings.custom_prompt:
        prompt = (
            f"{settings.custom_prompt}\n\n=== Documents to integrate ===\n"
            f"{_format_documents(documents, 'Document')}"
        )
    else:
        preset = get_preset(settings.prompt_preset)
        prompt = (
            f"{preset.integration_prompt} Please write the integrated document in "
            f"{language_name(settings.language)}:\n\n"
            f"{_format_documents(documents, preset.section_label)}"
        )

    if settings.embed_images:
        prompt += _KEEP_SCREENSHOTS_NOTE
    return prompt
