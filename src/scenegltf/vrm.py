"""Humanoid avatar (VRM 0.x) metadata extension.

Bones are found by fuzzy substring matching against lower-cased node names:
a name matches a bone when it contains ``_<token>`` for one of the bone's
tokens, and left/right bones additionally require a side marker.
"""

from __future__ import annotations

from scenegltf import __version__
from scenegltf.models import Material
from scenegltf.options import VrmMeta

LEFT_MARKERS = ("l_", "left")
RIGHT_MARKERS = ("r_", "right")

_FINGERS = ("Thumb", "Index", "Middle", "Ring", "Little")
_SEGMENTS = ("Proximal", "Intermediate", "Distal")


def _finger_tokens(finger: str, segment_number: int, segment: str) -> tuple[str, ...]:
    base = finger.lower()
    tokens = [f"{base}{segment.lower()}", f"{base}{segment_number}"]
    if finger == "Little":
        tokens.append(f"pinkey{segment_number}")
    return tuple(tokens)


def _finger_bones(side: str) -> dict[str, tuple[str, ...]]:
    return {
        f"{side}{finger}{segment}": _finger_tokens(finger, n, segment)
        for finger in _FINGERS
        for n, segment in enumerate(_SEGMENTS, start=1)
    }


# Bone name -> name tokens, in humanBones output order.
BONE_TOKENS: dict[str, tuple[str, ...]] = {
    "hips": ("hip", "pelvis"),
    "leftUpperLeg": ("upperleg", "upleg"),
    "rightUpperLeg": ("upperleg", "upleg"),
    "leftLowerLeg": ("lowerleg", "leftleg"),
    "rightLowerLeg": ("lowerleg", "rightleg"),
    "leftFoot": ("foot",),
    "rightFoot": ("foot",),
    "spine": ("spine",),
    "chest": ("chest", "spine1"),
    "neck": ("neck",),
    "head": ("head",),
    "leftShoulder": ("shoulder",),
    "rightShoulder": ("shoulder",),
    "leftUpperArm": ("upperarm", "leftarm"),
    "rightUpperArm": ("upperarm", "rightarm"),
    "leftLowerArm": ("lowerarm", "forearm"),
    "rightLowerArm": ("lowerarm", "forearm"),
    "leftHand": ("hand",),
    "rightHand": ("hand",),
    "leftToes": ("toe",),
    "rightToes": ("toe",),
    "leftEye": ("eye",),
    "rightEye": ("eye",),
    "jaw": ("jaw",),
    **_finger_bones("left"),
    **_finger_bones("right"),
    "upperChest": ("upperchest", "spine2"),
}

HUMAN_BONES: tuple[str, ...] = tuple(BONE_TOKENS)

BLEND_SHAPE_PRESETS = ("Neutral", "A", "I", "U", "E", "O")


def find_bone_node(node_names: list[str], bone: str) -> int:
    """Index of the first node whose name matches ``bone``, or -1."""
    tokens = BONE_TOKENS[bone]
    if "left" in bone:
        markers: tuple[str, ...] = LEFT_MARKERS
    elif "right" in bone:
        markers = RIGHT_MARKERS
    else:
        markers = ()

    for i, raw in enumerate(node_names):
        name = raw.lower()
        if markers and not any(m in name for m in markers):
            continue
        # spine1/spine2 belong to chest/upperChest
        if bone == "spine" and ("spine1" in name or "spine2" in name):
            continue
        if any(f"_{token}" in name for token in tokens):
            return i
    return -1


def _look_at_curve() -> dict:
    return {"xRange": 90.0, "yRange": 10.0}


def _usage(allowed: bool) -> str:
    return "Allow" if allowed else "Disallow"


def build_meta(meta: VrmMeta) -> dict:
    out = {
        "title": meta.title,
        "version": meta.version,
        "author": meta.author,
        "contactInformation": meta.contact_information,
        "reference": meta.reference,
        "texture": 0,
        "allowedUserName": meta.allowed_user,
        "otherPermissionUrl": meta.other_permission_url,
        "licenseName": meta.license_name,
        "otherLicenseUrl": meta.other_license_url,
    }
    # Both spellings: VRM 0.x readers expect "Ussage".
    for key, allowed in (
        ("violent", meta.violent_usage),
        ("sexual", meta.sexual_usage),
        ("commercial", meta.commercial_usage),
    ):
        out[f"{key}UsageName"] = _usage(allowed)
        out[f"{key}UssageName"] = _usage(allowed)
    return out


def build_material_properties(
    materials: list[Material], base_textures: list[int | None]
) -> list[dict]:
    props = []
    for material, base_texture in zip(materials, base_textures):
        texture_properties = {}
        if base_texture is not None:
            texture_properties["_MainTex"] = base_texture
        props.append(
            {
                "name": material.name,
                "renderQueue": 2000,
                "shader": "Standard",
                "floatProperties": {},
                "vectorProperties": {
                    "_Color": [float(c) for c in material.base_color],
                    "_EmissionColor": [float(c) for c in material.emission] + [1.0],
                },
                "textureProperties": texture_properties,
                "keywordMap": {"_ALPHATEST_ON": True, "_NORMALMAP": True},
                "tagMap": {"RenderType": "TransparentCutout"},
            }
        )
    return props


def build_vrm_extension(
    node_names: list[str],
    materials: list[Material],
    base_textures: list[int | None],
    meta: VrmMeta,
) -> dict:
    """Root-level ``VRM`` extension object.

    ``base_textures`` is index-parallel to ``materials`` and holds the base
    colour texture index of each exported material.
    """
    human_bones = []
    for bone in HUMAN_BONES:
        node = find_bone_node(node_names, bone)
        if node >= 0:
            human_bones.append({"bone": bone, "node": node, "useDefaultValues": True})

    first_person = {
        "firstPersonBone": find_bone_node(node_names, "head"),
        "firstPersonBoneOffset": {"x": 0.0, "y": 0.0, "z": 0.0},
        "meshAnnotations": [],
        "lookAtTypeName": "Bone",
        "lookAtHorizontalInner": _look_at_curve(),
        "lookAtHorizontalOuter": _look_at_curve(),
        "lookAtVerticalDown": _look_at_curve(),
        "lookAtVerticalUp": _look_at_curve(),
    }

    return {
        "exporterVersion": f"scenegltf-{__version__}",
        "meta": build_meta(meta),
        "humanoid": {"humanBones": human_bones},
        "firstPerson": first_person,
        "blendShapeMaster": {
            "blendShapeGroups": [
                {"name": name, "presetName": "unknown", "binds": [], "materialValues": []}
                for name in BLEND_SHAPE_PRESETS
            ]
        },
        "secondaryAnimation": {"boneGroups": [], "colliderGroups": []},
        "materialProperties": build_material_properties(materials, base_textures),
    }
