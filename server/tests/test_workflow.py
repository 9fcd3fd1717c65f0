from __future__ import annotations

import pytest

from app.models.generation import GenerationParams
from app.services import workflow
from app.services.workflow import JobDescription, Step, StepReference, build_workflow


def _params(**overrides) -> GenerationParams:
    values = {"prompt": "cat morphing into galaxy", "width": 1024, "height": 576, "frame_count": 15}
    values.update(overrides)
    return GenerationParams(**values)


@pytest.mark.parametrize(
    "overrides",
    [{}, {"seed": 0, "steps": 4, "cfg_scale": 3.0}, {"frame_count": 1, "model_path": "custom.safetensors"}],
)
def test_every_reference_targets_an_earlier_step(overrides) -> None:
    job = build_workflow(_params(**overrides))
    declared: list[str] = []
    for step_id, step in job.items():
        for ref in step.references():
            assert ref.step_id in declared
        declared.append(step_id)


def test_graph_contains_the_full_pipeline_in_dependency_order() -> None:
    job = build_workflow(_params())
    kinds = [step.kind for step in job.values()]
    assert kinds == [
        "CheckpointLoaderSimple",
        "CLIPTextEncode",
        "CLIPTextEncode",
        "EmptyLatentImage",
        "KSampler",
        "VAEDecode",
        "SaveImage",
        "SaveAnimatedWEBP",
    ]
    assert job[workflow.POSITIVE].inputs["text"] == "cat morphing into galaxy"
    assert job[workflow.NEGATIVE].inputs["text"] == workflow.NEGATIVE_PROMPT
    assert job[workflow.SAVE_ANIMATION].inputs["fps"] == 8


def test_frame_count_becomes_latent_batch_size() -> None:
    latent = build_workflow(_params(width=640, height=360, frame_count=24))[workflow.LATENT]
    assert latent.inputs == {"width": 640, "height": 360, "batch_size": 24}


def test_defaults_fill_unset_sampler_options() -> None:
    job = build_workflow(_params())
    sampler = job[workflow.SAMPLER].inputs
    assert sampler["steps"] == 20
    assert sampler["cfg"] == 7.5
    assert 0 <= sampler["seed"] < 1_000_000
    assert job[workflow.CHECKPOINT].inputs["ckpt_name"] == "seedream-v1.safetensors"


def test_explicit_seed_is_kept() -> None:
    sampler = build_workflow(_params(seed=42))[workflow.SAMPLER].inputs
    assert sampler["seed"] == 42


def test_payload_uses_backend_api_format() -> None:
    payload = build_workflow(_params(seed=7)).to_payload()
    sampler = payload[workflow.SAMPLER]
    assert sampler["class_type"] == "KSampler"
    assert sampler["_meta"] == {"title": "KSampler"}
    assert sampler["inputs"]["positive"] == [workflow.POSITIVE, 0]
    assert payload[workflow.DECODE]["inputs"]["vae"] == [workflow.CHECKPOINT, 2]


def test_job_description_rejects_dangling_references() -> None:
    with pytest.raises(ValueError):
        JobDescription(
            {
                "1": Step(kind="VAEDecode", inputs={"samples": StepReference("9", 0)}, label="Decode"),
            }
        )


def test_job_description_is_read_only() -> None:
    job = build_workflow(_params())
    with pytest.raises(TypeError):
        job["99"] = job[workflow.LATENT]  # type: ignore[index]
