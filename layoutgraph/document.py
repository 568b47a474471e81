"""
Layout document parsing.

Turns the raw JSON layout into immutable typed objects. This is the only
place that validates the document; everything downstream trusts it.
"""

import json
import math
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ValidationError

SPEC_VERSION = "layout/v1"

MEDIA_KINDS = ('video', 'image', 'audio', 'colour')
VISUAL_KINDS = ('video', 'image', 'colour')
FILE_KINDS = ('video', 'image', 'audio')
RESIZE_MODES = ('fit', 'fill', 'stretch')
FADE_TYPES = ('in', 'out')

# Strings are matched first so that "//" inside a URL survives.
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|/\*.*?\*/|//[^\n]*', re.DOTALL)


@dataclass(frozen=True)
class Canvas:
    w: int
    h: int
    fps: float
    background_color: Optional[str] = None


@dataclass(frozen=True)
class Source:
    kind: str
    src: str
    x: Optional[int] = None
    y: Optional[int] = None
    w: Optional[int] = None
    h: Optional[int] = None
    opacity: float = 1.0
    resize: str = 'stretch'
    volume: float = 100.0
    at: Optional[float] = None
    duration: Optional[float] = None

    @property
    def is_visual(self) -> bool:
        return self.kind in VISUAL_KINDS

    @property
    def is_file(self) -> bool:
        return self.kind in FILE_KINDS


@dataclass(frozen=True)
class FadeParams:
    id: str
    type: Optional[str] = None
    duration: Optional[float] = None
    kind: str = 'fade'


@dataclass(frozen=True)
class Effect:
    """An effect of a kind this parser has no structured parameters for."""
    id: str
    kind: str
    params: Tuple[Tuple[str, Any], ...] = ()


EffectSpec = Union[FadeParams, Effect]


@dataclass(frozen=True)
class Block:
    id: str
    at: Optional[float] = None
    duration: Optional[float] = None
    visuals: Tuple[Source, ...] = ()
    audio: Optional[Source] = None
    effects: Tuple[EffectSpec, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.visuals and self.audio is None


@dataclass(frozen=True)
class Transition:
    id: str
    type: str
    duration: Optional[float]
    between: Tuple[str, str]


@dataclass(frozen=True)
class Document:
    canvas: Canvas
    blocks: Tuple[Block, ...] = ()
    background: Optional[Source] = None
    overlay: Optional[Source] = None
    transitions: Tuple[Transition, ...] = ()
    spec: str = SPEC_VERSION
    path: Optional[str] = field(default=None, compare=False)


def strip_comments(json_string: str) -> str:
    """Strips C-style comments (// and /* */) from a string."""
    def keep_strings(match):
        return match.group(1) or ''
    return _COMMENT_RE.sub(keep_strings, json_string)


def load_document(path: str) -> Document:
    """Load and validate a layout file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw_json_string = f.read()
        data = json.loads(strip_comments(raw_json_string))
    except FileNotFoundError:
        raise ValidationError(f"Layout file not found: {path}")
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in layout file (or syntax error after comment stripping): {e}")
    base_dir = os.path.dirname(os.path.abspath(path))
    document = parse_document(data, base_dir=base_dir)
    return replace(document, path=os.path.abspath(path))


def parse_document(data: Dict[str, Any], base_dir: Optional[str] = None) -> Document:
    if not isinstance(data, dict):
        raise ValidationError("Layout document must be a JSON object at the top level")

    spec = data.get('spec', SPEC_VERSION)
    if spec != SPEC_VERSION:
        raise ValidationError(f"Unsupported layout spec '{spec}'; expected '{SPEC_VERSION}'")

    for key in ('canvas', 'blocks'):
        if key not in data:
            raise ValidationError(f"Missing required top-level key: {key}")

    canvas = _parse_canvas(data['canvas'])

    background = None
    if data.get('background') is not None:
        background = _parse_source(data['background'], "background", base_dir)
        if not background.is_visual:
            raise ValidationError("Global background must be a visual source (video, image or colour)")

    overlay = None
    if data.get('overlay') is not None:
        overlay = _parse_source(data['overlay'], "overlay", base_dir)
        if not overlay.is_visual:
            raise ValidationError("Global overlay must be a visual source (video, image or colour)")

    raw_blocks = data['blocks']
    if not isinstance(raw_blocks, list):
        raise ValidationError("'blocks' must be a list")
    blocks: List[Block] = []
    seen_ids = set()
    for index, raw_block in enumerate(raw_blocks):
        block = _parse_block(raw_block, index, base_dir)
        if block.id in seen_ids:
            raise ValidationError(f"Duplicate block id '{block.id}'. Block ids must be unique.")
        seen_ids.add(block.id)
        blocks.append(block)

    raw_transitions = data.get('transitions') or []
    if not isinstance(raw_transitions, list):
        raise ValidationError("'transitions' must be a list")
    transitions = tuple(_parse_transition(t, i) for i, t in enumerate(raw_transitions))

    return Document(
        canvas=canvas,
        blocks=tuple(blocks),
        background=background,
        overlay=overlay,
        transitions=transitions,
        spec=spec,
    )


def _number(value: Any, where: str, minimum: Optional[float] = None,
            maximum: Optional[float] = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ValidationError(f"{where} must be a number, got {value!r}")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{where} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{where} must be <= {maximum}, got {value}")
    return value


def _optional_number(data: Dict[str, Any], key: str, where: str, **bounds) -> Optional[float]:
    if data.get(key) is None:
        return None
    return _number(data[key], f"{where} '{key}'", **bounds)


def _parse_canvas(raw: Any) -> Canvas:
    if not isinstance(raw, dict):
        raise ValidationError("'canvas' must be an object")
    for key in ('w', 'h', 'fps'):
        if key not in raw:
            raise ValidationError(f"Missing required canvas key: {key}")
        value = _number(raw[key], f"Canvas '{key}'")
        if value <= 0:
            raise ValidationError(f"Canvas '{key}' must be positive, got {value}")
    background_color = raw.get('background_color')
    if background_color is not None and not isinstance(background_color, str):
        raise ValidationError("Canvas 'background_color' must be a string")
    return Canvas(w=int(raw['w']), h=int(raw['h']), fps=raw['fps'],
                  background_color=background_color)


def _parse_source(raw: Any, where: str, base_dir: Optional[str]) -> Source:
    if not isinstance(raw, dict):
        raise ValidationError(f"Source in {where} must be an object")
    kind = raw.get('kind')
    if kind not in MEDIA_KINDS:
        raise ValidationError(f"Source in {where} has unknown kind {kind!r}; expected one of {', '.join(MEDIA_KINDS)}")
    src = raw.get('src')
    if not isinstance(src, str):
        raise ValidationError(f"Source in {where} is missing a string 'src'")
    if kind in FILE_KINDS and src and base_dir and not os.path.isabs(src) and '://' not in src:
        src = os.path.join(base_dir, src)

    resize = raw.get('resize', 'stretch')
    if resize not in RESIZE_MODES:
        raise ValidationError(f"Source in {where} has unknown resize mode {resize!r}; expected fit, fill or stretch")

    geometry = {}
    for key in ('x', 'y'):
        value = _optional_number(raw, key, f"Source in {where}")
        geometry[key] = int(value) if value is not None else None
    for key in ('w', 'h'):
        value = _optional_number(raw, key, f"Source in {where}", minimum=1)
        geometry[key] = int(value) if value is not None else None

    opacity = _optional_number(raw, 'opacity', f"Source in {where}", minimum=0, maximum=1)
    volume = _optional_number(raw, 'volume', f"Source in {where}", minimum=0, maximum=100)

    return Source(
        kind=kind,
        src=src,
        opacity=1.0 if opacity is None else float(opacity),
        resize=resize,
        volume=100.0 if volume is None else float(volume),
        at=_optional_number(raw, 'at', f"Source in {where}", minimum=0),
        duration=_optional_number(raw, 'duration', f"Source in {where}"),
        **geometry,
    )


def _parse_effect(raw: Any, block_id: str, index: int) -> EffectSpec:
    where = f"Effect {index} of block '{block_id}'"
    if not isinstance(raw, dict):
        raise ValidationError(f"{where} must be an object")
    kind = raw.get('kind')
    if not isinstance(kind, str) or not kind:
        raise ValidationError(f"{where} is missing 'kind'")
    effect_id = raw.get('id') or f"{block_id}_effect_{index}"
    if kind == 'fade':
        fade_type = raw.get('type')
        if fade_type is not None and fade_type not in FADE_TYPES:
            raise ValidationError(f"{where} has fade type {fade_type!r}; expected 'in' or 'out'")
        return FadeParams(id=effect_id, type=fade_type,
                          duration=_optional_number(raw, 'duration', where))
    params = tuple(sorted((k, v) for k, v in raw.items() if k not in ('kind', 'id')))
    return Effect(id=effect_id, kind=kind, params=params)


def _parse_block(raw: Any, index: int, base_dir: Optional[str]) -> Block:
    if not isinstance(raw, dict):
        raise ValidationError(f"Block at index {index} must be an object")
    block_id = raw.get('id') or f"block_{index}"
    if not isinstance(block_id, str):
        raise ValidationError(f"Block at index {index} has a non-string id")
    where = f"block '{block_id}'"

    raw_visuals = raw.get('visuals') or []
    if not isinstance(raw_visuals, list):
        raise ValidationError(f"'visuals' of {where} must be a list")
    visuals = []
    for i, raw_visual in enumerate(raw_visuals):
        visual = _parse_source(raw_visual, f"{where} visual {i}", base_dir)
        if not visual.is_visual:
            raise ValidationError(f"Visual {i} of {where} has kind '{visual.kind}'; audio goes in 'audio'")
        visuals.append(visual)

    audio = None
    if raw.get('audio') is not None:
        audio = _parse_source(raw['audio'], f"{where} audio", base_dir)
        if audio.kind != 'audio':
            raise ValidationError(f"Audio of {where} must have kind 'audio', got '{audio.kind}'")

    raw_effects = raw.get('effects') or []
    if not isinstance(raw_effects, list):
        raise ValidationError(f"'effects' of {where} must be a list")

    return Block(
        id=block_id,
        at=_optional_number(raw, 'at', f"Block '{block_id}'", minimum=0),
        duration=_optional_number(raw, 'duration', f"Block '{block_id}'"),
        visuals=tuple(visuals),
        audio=audio,
        effects=tuple(_parse_effect(e, block_id, i) for i, e in enumerate(raw_effects)),
    )


def _parse_transition(raw: Any, index: int) -> Transition:
    where = f"Transition at index {index}"
    if not isinstance(raw, dict):
        raise ValidationError(f"{where} must be an object")
    between = raw.get('between')
    if not (isinstance(between, list) and len(between) == 2 and all(isinstance(b, str) for b in between)):
        raise ValidationError(f"{where} must name exactly two block ids in 'between'")
    transition_type = raw.get('type')
    if not isinstance(transition_type, str) or not transition_type:
        raise ValidationError(f"{where} is missing 'type'")
    return Transition(
        id=raw.get('id') or f"transition_{index}",
        type=transition_type,
        duration=_optional_number(raw, 'duration', where),
        between=(between[0], between[1]),
    )
