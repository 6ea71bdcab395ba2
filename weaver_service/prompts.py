"""Instruction prompts sent alongside the input images."""

from __future__ import annotations

from enum import Enum


class WeaveMode(str, Enum):
    COMPOSITE = "composite"
    SKETCH = "sketch"


def normalize_caption(text: str) -> str:
    """Collapse spaces within each line, keep line breaks, escape double quotes."""
    lines = [" ".join(line.split()) for line in text.strip().splitlines()]
    return "\n".join(lines).replace('"', '\\"')


_COMPOSITE_HEADER = """You are an expert image editing AI.
The user has provided two images{and_text}:
1.  **Foreground Image** (the first image provided): This image contains the primary subject(s) (e.g., a person, animal) that need to be isolated.
2.  **Background Image** (the second image provided): This image will serve as the canvas for {canvas_use}the final composition.
{text_item}
Your task is to perform the following steps in order:
"""

_TEXT_ITEM = '3.  **Text Input**: The text string "{caption}" needs to be rendered.\n'

_SKETCH_STEP = (
    'On the **Background Image**, render the provided **Text Input** ("{caption}") '
    "as if it were naturally hand-sketched onto the scene."
)
_ISOLATE_STEP = (
    "From the **Foreground Image**, identify and accurately isolate the primary human "
    "or animal subject(s) **in their entirety**. Ensure the complete subject is captured "
    "without any cropping or missing parts. Remove the original background from this "
    "**Foreground Image** completely, leaving only the isolated subject(s). The area where "
    "the background was removed should ideally be transparent."
)
_TAKE_STEP = "Take the isolated subject(s) (with transparent or neutral background) from step {isolate_no}."
_BLEND_WITH_TEXT = (
    "Place and seamlessly blend these isolated subject(s) onto the **Background Image** that "
    "now includes the hand-sketched text (from step 1). The text-sketched Background Image "
    "should act as the final canvas."
)
_BLEND_PLAIN = (
    "Place and seamlessly blend these isolated subject(s) onto the **Background Image**. "
    "The Background Image should act as the final canvas."
)
_RETURN_WITH_TEXT = (
    "Return the final composite image as a single image. Ensure this image contains the "
    "background with sketched text, and the isolated foreground subject blended on top. "
    "Do not output any descriptive text or any other content apart from the image."
)
_RETURN_PLAIN = (
    "Return the final composite image as a single image. Ensure this image contains the "
    "background and the isolated foreground subject blended on top. "
    "Do not output any descriptive text or any other content apart from the image."
)


def build_composite_prompt(text: str) -> str:
    """
    Prompt for the main flow: foreground subject cut out and blended onto the
    background, with the caption hand-sketched on the background first.

    A blank caption drops the sketching step and every mention of text.
    """
    caption = normalize_caption(text or "")
    if caption:
        steps = [
            _SKETCH_STEP.format(caption=caption),
            _ISOLATE_STEP,
            _TAKE_STEP.format(isolate_no=2),
            _BLEND_WITH_TEXT,
            _RETURN_WITH_TEXT,
        ]
        header = _COMPOSITE_HEADER.format(
            and_text=" and a text string",
            canvas_use="text sketching and ",
            text_item=_TEXT_ITEM.format(caption=caption),
        )
    else:
        steps = [
            _ISOLATE_STEP,
            _TAKE_STEP.format(isolate_no=1),
            _BLEND_PLAIN,
            _RETURN_PLAIN,
        ]
        header = _COMPOSITE_HEADER.format(and_text="", canvas_use="", text_item="")

    numbered = "\n".join(f"{i}.  {step}" for i, step in enumerate(steps, start=1))
    return header + numbered


def build_sketch_prompt(text: str) -> str:
    """Prompt for rendering the caption alone onto the background image."""
    caption = normalize_caption(text or "").replace("'", "\\'")
    return f"render the text '{caption}' as a hand sketch on this image"


def build_prompt(mode: WeaveMode, text: str) -> str:
    if mode == WeaveMode.SKETCH:
        return build_sketch_prompt(text)
    return build_composite_prompt(text)
