from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Sequence

from openai import OpenAI

from shotguide.config import AppConfig
from shotguide.errors import PlanGenerationError
from shotguide.services import call_chat, response_text
from shotguide.types import SceneData, Shot, UploadedImage

PLAN_FAILED_MESSAGE = (
    "Failed to generate scene prompts from the AI. The model may have returned an invalid "
    "JSON structure. Please try again."
)

PLAN_SYSTEM_PROMPT = (
    "# ROLE: AI Creative Director & Digital Twin Specialist\n\n"
    "# GOAL: Write a sequence of prompts for a photorealistic rendering engine. In every rendered image the "
    "product must be an exact, engineering-grade replica of the product in the user's images. Product "
    "accuracy comes before everything else.\n\n"
    "# DIGITAL TWIN FIDELITY\n"
    "The user's images are the ground truth. Do not reinterpret the product. Any difference in geometry, "
    "material, scale or feature placement between the source images and the renders is a failure.\n\n"
    "# PROCESS (follow both steps in order)\n\n"
    "## STEP 1: DIGITAL TWIN SPECIFICATION\n"
    "1. Analyse the product images forensically and reverse-engineer the product into a technical "
    "specification, as if writing the brief for a CAD model.\n"
    "2. This is a structured breakdown, not a creative paragraph. Cover:\n"
    "   - Component inventory: every distinct part (e.g. for a shower door: top track, bottom track, rollers, "
    "handles, fixed and sliding glass panels, jambs, seals).\n"
    "   - Geometry and dimensions: shape, profile and relative size of each component, in technical language.\n"
    "   - Materials and finishes: exact material and surface finish of each component.\n"
    "   - Assembly and feature placement: how components connect and where features sit.\n"
    "3. Put the complete specification in the 'master_product_description' field.\n\n"
    "## STEP 2: SCENE AND PROMPTS\n"
    "1. Only after STEP 1, design a high-end environment matching DESIRED_STYLE and describe it in "
    "'master_scene_description'.\n"
    "2. Plan a logical sequence of 5-6 shots (wide lifestyle, medium angles, detail shots of specific "
    "components). Number them from 1 in 'shot_number' and name each in 'shot_type'.\n"
    "3. MANDATORY: every shot's 'prompt' MUST START with the complete, verbatim Digital Twin Specification "
    "from STEP 1, FOLLOWED by that shot's scene description, camera instructions (lens, angle, focus point) "
    "and lighting.\n\n"
    "# EXAMPLE PROMPT (shower door handle detail)\n"
    "\"[Digital Twin Specification: Bypass sliding shower door system. Component: Handle. Geometry: solid "
    "rectangular bar, 1.5in x 0.5in profile, 24in length. Material: aluminum. Finish: matte black powder "
    "coat...] A photorealistic rendering of this shower door system in a modern bathroom. Camera: 100mm macro "
    "lens, focused tightly on the rectangular bar handle, shallow depth of field.\"\n\n"
    "# OUTPUT\n"
    "Respond STRICTLY with one JSON object that follows the provided schema, no additional text."
)

SCENE_PLAN_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "scene_id": {"type": "string"},
        "master_scene_description": {"type": "string"},
        "master_product_description": {"type": "string"},
        "shot_sequence": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "shot_number": {"type": "integer"},
                    "shot_type": {"type": "string"},
                    "prompt": {"type": "string"},
                },
                "required": ["shot_number", "shot_type", "prompt"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["scene_id", "master_scene_description", "master_product_description", "shot_sequence"],
    "additionalProperties": False,
}


def build_plan_messages(category: str, style: str, images: Sequence[UploadedImage]) -> List[dict]:
    user_text = (
        "[INPUTS]\n"
        f"PRODUCT_CATEGORY: \"{category}\"\n"
        f"DESIRED_STYLE: \"{style}\"\n\n"
        "Based on the desired style and, MOST IMPORTANTLY, the provided product images, generate the scene "
        "prompts according to your instructions. The product replica must be perfect."
    )
    content: List[dict] = [{"type": "text", "text": user_text}]
    for image in images:
        content.append({"type": "image_url", "image_url": {"url": image.to_data_url()}})
    return [
        {"role": "system", "content": PLAN_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def plan_request_body() -> Dict[str, Any]:
    return {
        "response_format": {
            "type": "json_schema",
            "json_schema": {"name": "scene_plan", "strict": True, "schema": SCENE_PLAN_SCHEMA},
        },
    }


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1].strip()
        if text.lower().startswith("json"):
            text = text[4:].strip()
    return text


def _require_str(obj: Dict[str, Any], key: str, where: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{where}.{key} must be a string")
    return value


def parse_scene_plan(text: str) -> SceneData:
    """
    Parse the plan response into SceneData.

    Every field of the schema is mandatory. Shot numbers must be positive, unique
    integers; shots are returned in ascending shot_number order with no images.
    Raises ValueError (or json.JSONDecodeError) on any deviation.
    """
    data = json.loads(_strip_code_fence(text))
    if not isinstance(data, dict):
        raise ValueError("plan must be a JSON object")

    raw_shots = data.get("shot_sequence")
    if not isinstance(raw_shots, list):
        raise ValueError("shot_sequence must be an array")

    shots: List[Shot] = []
    seen = set()
    for i, item in enumerate(raw_shots):
        where = f"shot_sequence[{i}]"
        if not isinstance(item, dict):
            raise ValueError(f"{where} must be an object")
        number = item.get("shot_number")
        # bool is an int subclass; reject it explicitly
        if not isinstance(number, int) or isinstance(number, bool) or number < 1:
            raise ValueError(f"{where}.shot_number must be a positive integer")
        if number in seen:
            raise ValueError(f"duplicate shot_number {number}")
        seen.add(number)
        shots.append(
            Shot(
                shot_number=number,
                shot_type=_require_str(item, "shot_type", where),
                prompt=_require_str(item, "prompt", where),
            )
        )

    return SceneData(
        scene_id=_require_str(data, "scene_id", "plan"),
        master_scene_description=_require_str(data, "master_scene_description", "plan"),
        master_product_description=_require_str(data, "master_product_description", "plan"),
        shots=tuple(sorted(shots, key=lambda s: s.shot_number)),
    )


def fetch_scene_plan(
    client: Optional[OpenAI],
    cfg: AppConfig,
    category: str,
    style: str,
    images: Sequence[UploadedImage],
    on_log: Optional[Callable[[str], None]] = None,
) -> SceneData:
    messages = build_plan_messages(category, style, images)
    if on_log:
        total_bytes = sum(len(img.encoded_bytes) for img in images)
        on_log(f"Planner: payload size ~{total_bytes/1024:.1f} KB across {len(images)} images")
        on_log(f"Planner: calling {cfg.plan_model} (timeout {cfg.request_timeout_sec}s)…")
    try:
        resp = call_chat(
            client,
            cfg,
            model=cfg.plan_model,
            messages=messages,
            extra_body=plan_request_body(),
            on_log=on_log,
        )
    except Exception as e:  # noqa: BLE001
        if on_log:
            on_log(f"Planner: request failed: {e}")
        raise PlanGenerationError(PLAN_FAILED_MESSAGE) from e

    text = response_text(resp)
    if on_log:
        on_log(f"Planner: received {len(text)} characters")
    try:
        scene = parse_scene_plan(text)
    except (ValueError, TypeError) as e:
        if on_log:
            on_log(f"Planner: unusable plan: {e}")
        raise PlanGenerationError(PLAN_FAILED_MESSAGE) from e
    if on_log:
        on_log(f"Planner: scene {scene.scene_id} with {len(scene.shots)} shots")
    return scene
