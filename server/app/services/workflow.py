"""Build the ComfyUI job graph for a looping video generation."""
from __future__ import annotations

import random
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, Mapping, NamedTuple, Union

from app.models.generation import GenerationParams

DEFAULT_STEPS = 20
DEFAULT_CFG_SCALE = 7.5
DEFAULT_MODEL_PATH = "seedream-v1.safetensors"
NEGATIVE_PROMPT = "low quality, blurry, distorted, text, watermark, logo, bad anatomy"
ANIMATION_FPS = 8
MAX_SEED = 1_000_000

# Step ids, also used to order extracted outputs.
CHECKPOINT = "1"
POSITIVE = "2"
NEGATIVE = "3"
LATENT = "4"
SAMPLER = "5"
DECODE = "6"
SAVE_IMAGE = "7"
SAVE_ANIMATION = "8"


class StepReference(NamedTuple):
    """Data-flow edge to output slot ``slot`` of step ``step_id``."""

    step_id: str
    slot: int


StepInput = Union[StepReference, str, int, float, bool]


@dataclass(frozen=True)
class Step:
    kind: str
    inputs: Mapping[str, StepInput]
    label: str

    def references(self) -> Iterator[StepReference]:
        for value in self.inputs.values():
            if isinstance(value, StepReference):
                yield value

    def to_payload(self) -> dict[str, Any]:
        return {
            "inputs": {
                name: [value.step_id, value.slot] if isinstance(value, StepReference) else value
                for name, value in self.inputs.items()
            },
            "class_type": self.kind,
            "_meta": {"title": self.label},
        }


class JobDescription(Mapping[str, Step]):
    """Immutable, ordered job graph. Every reference points at an earlier step."""

    def __init__(self, steps: Mapping[str, Step]):
        declared: set[str] = set()
        for step_id, step in steps.items():
            for ref in step.references():
                if ref.step_id not in declared:
                    raise ValueError(f"Step {step_id} references undeclared step {ref.step_id}")
            declared.add(step_id)
        self._steps = MappingProxyType(dict(steps))

    def __getitem__(self, step_id: str) -> Step:
        return self._steps[step_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def to_payload(self) -> dict[str, Any]:
        """Render the graph in the backend's API format."""

        return {step_id: step.to_payload() for step_id, step in self._steps.items()}


def build_workflow(params: GenerationParams) -> JobDescription:
    """Turn generation parameters into a text-to-animation job graph.

    ``frame_count`` becomes the batch size of the empty latent: one generated
    frame per batch slot, saved as an animation at ``ANIMATION_FPS``.
    """

    seed = params.seed if params.seed is not None else random.randrange(MAX_SEED)
    steps = params.steps or DEFAULT_STEPS
    cfg = params.cfg_scale or DEFAULT_CFG_SCALE
    model_path = params.model_path or DEFAULT_MODEL_PATH

    return JobDescription(
        {
            CHECKPOINT: Step(
                kind="CheckpointLoaderSimple",
                inputs={"ckpt_name": model_path},
                label="Load Checkpoint",
            ),
            POSITIVE: Step(
                kind="CLIPTextEncode",
                inputs={"text": params.prompt, "clip": StepReference(CHECKPOINT, 1)},
                label="CLIP Text Encode (Positive)",
            ),
            NEGATIVE: Step(
                kind="CLIPTextEncode",
                inputs={"text": NEGATIVE_PROMPT, "clip": StepReference(CHECKPOINT, 1)},
                label="CLIP Text Encode (Negative)",
            ),
            LATENT: Step(
                kind="EmptyLatentImage",
                inputs={
                    "width": params.width,
                    "height": params.height,
                    "batch_size": params.frame_count,
                },
                label="Empty Latent Image",
            ),
            SAMPLER: Step(
                kind="KSampler",
                inputs={
                    "seed": seed,
                    "steps": steps,
                    "cfg": cfg,
                    "sampler_name": "euler",
                    "scheduler": "normal",
                    "denoise": 1,
                    "model": StepReference(CHECKPOINT, 0),
                    "positive": StepReference(POSITIVE, 0),
                    "negative": StepReference(NEGATIVE, 0),
                    "latent_image": StepReference(LATENT, 0),
                },
                label="KSampler",
            ),
            DECODE: Step(
                kind="VAEDecode",
                inputs={"samples": StepReference(SAMPLER, 0), "vae": StepReference(CHECKPOINT, 2)},
                label="VAE Decode",
            ),
            SAVE_IMAGE: Step(
                kind="SaveImage",
                inputs={"filename_prefix": "seedream_loop", "images": StepReference(DECODE, 0)},
                label="Save Image",
            ),
            SAVE_ANIMATION: Step(
                kind="SaveAnimatedWEBP",
                inputs={
                    "images": StepReference(DECODE, 0),
                    "fps": ANIMATION_FPS,
                    "loop_count": 0,
                    "filename_prefix": "dream_loop",
                    "format": "image/gif",
                    "pingpong": False,
                    "save_output": True,
                },
                label="Save Animated Video",
            ),
        }
    )
