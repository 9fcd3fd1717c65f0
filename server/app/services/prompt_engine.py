"""Prompt assembly for seamless dream loops."""
from __future__ import annotations

import random
import re
from dataclasses import dataclass

ARTISTIC_MODIFIERS = (
    "Salvador Dali inspired",
    "psychedelic art style",
    "flowing liquid textures",
    "particle effects",
    "gradient backgrounds",
    "neon accents",
)

_LEADING_ARTICLE = re.compile(r"^(a|an|the)\s+")
_CONJUNCTION = re.compile(r"\s+(and|or|but)\s+")


@dataclass(frozen=True)
class DreamElements:
    element1: str
    element2: str
    element3: str

    def as_dict(self) -> dict[str, str]:
        return {"element1": self.element1, "element2": self.element2, "element3": self.element3}


def _optimize(element: str) -> str:
    cleaned = _LEADING_ARTICLE.sub("", element.lower().strip())
    cleaned = _CONJUNCTION.sub(" ", cleaned, count=1)
    # One visual concept per element.
    return cleaned.split()[0] if cleaned.split() else ""


def optimize_dream_elements(elements: DreamElements) -> DreamElements:
    """Lower-case each element, drop a leading article and keep its first word."""

    return DreamElements(
        element1=_optimize(elements.element1),
        element2=_optimize(elements.element2),
        element3=_optimize(elements.element3),
    )


def generate_loop_prompt(elements: DreamElements) -> str:
    e1, e2, e3 = elements.element1, elements.element2, elements.element3
    return " ".join(
        [
            f"Seamless infinite loop: {e1} morphing into {e2}, transitioning to {e3}, flowing back to {e1}.",
            "Dream-like melting transitions, surreal physics, fluid morphing, ethereal atmosphere.",
            "Continuous motion, hypnotic rhythm, perfect loop, no cuts, smooth fade transitions.",
            "Cinematic quality, vibrant colors, soft focus, mystical lighting, floating elements.",
            "10-15 seconds duration, high resolution, optimized for seamless playback.",
        ]
    )


def generate_enhanced_prompt(elements: DreamElements, *, rng: random.Random | None = None) -> str:
    modifier = (rng or random).choice(ARTISTIC_MODIFIERS)
    return f"{generate_loop_prompt(elements)} {modifier}, masterpiece quality, award-winning cinematography."


def generate_transition_prompts(elements: DreamElements) -> list[str]:
    e1, e2, e3 = elements.element1, elements.element2, elements.element3
    return [
        f"{e1} slowly dissolving and transforming into {e2}, dream-like morphing, fluid transition",
        f"{e2} melting and reshaping into {e3}, surreal transformation, ethereal flow",
        f"{e3} fading and morphing back into {e1}, completing the infinite loop, seamless transition",
    ]


def generate_prompt_variations(elements: DreamElements, *, rng: random.Random | None = None) -> list[str]:
    """Alternative phrasings of the same loop, for A/B comparisons."""

    opt = optimize_dream_elements(elements)
    e1, e2, e3 = opt.element1, opt.element2, opt.element3
    return [
        generate_loop_prompt(opt),
        generate_enhanced_prompt(opt, rng=rng),
        f"Infinite dream sequence: {e1} ↻ {e2} ↻ {e3} ↻ repeat. "
        "Hypnotic transitions, mystical atmosphere, perfect loop, 15 seconds.",
        f"Seamless transformation cycle: {e1} becomes {e2} becomes {e3} becomes {e1}. "
        "Fluid morphing, dream logic, ethereal beauty, looping video.",
    ]
