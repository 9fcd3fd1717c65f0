from __future__ import annotations

import random

from app.services.prompt_engine import (
    ARTISTIC_MODIFIERS,
    DreamElements,
    generate_enhanced_prompt,
    generate_loop_prompt,
    generate_prompt_variations,
    generate_transition_prompts,
    optimize_dream_elements,
)


def test_optimize_lowercases_and_drops_articles() -> None:
    optimized = optimize_dream_elements(DreamElements("A Cat", "  the Galaxy ", "an old waterfall"))
    assert optimized == DreamElements("cat", "galaxy", "old")


def test_optimize_collapses_conjunctions_to_first_concept() -> None:
    optimized = optimize_dream_elements(DreamElements("fire and ice", "moon", "sea"))
    assert optimized.element1 == "fire"


def test_loop_prompt_cycles_back_to_first_element() -> None:
    prompt = generate_loop_prompt(DreamElements("cat", "galaxy", "waterfall"))
    assert prompt.startswith(
        "Seamless infinite loop: cat morphing into galaxy, transitioning to waterfall, flowing back to cat."
    )
    assert prompt.endswith("optimized for seamless playback.")


def test_enhanced_prompt_appends_one_modifier() -> None:
    prompt = generate_enhanced_prompt(DreamElements("cat", "galaxy", "waterfall"), rng=random.Random(1))
    assert any(modifier in prompt for modifier in ARTISTIC_MODIFIERS)
    assert prompt.endswith("masterpiece quality, award-winning cinematography.")


def test_transition_prompts_cover_each_stage() -> None:
    stages = generate_transition_prompts(DreamElements("cat", "galaxy", "waterfall"))
    assert len(stages) == 3
    assert stages[0].startswith("cat slowly dissolving and transforming into galaxy")
    assert stages[2].startswith("waterfall fading and morphing back into cat")


def test_variations_use_optimized_elements() -> None:
    variations = generate_prompt_variations(DreamElements("A Cat", "Galaxy", "Waterfall"), rng=random.Random(0))
    assert len(variations) == 4
    assert all("Cat" not in variation for variation in variations)
    assert "cat ↻ galaxy ↻ waterfall" in variations[2]
