from .base import (
    EffectHandler,
    SourceHandler,
    StreamPair,
    TransitionHandler,
    TransitionInputs,
    TransitionOutput,
)
from .effects import FadeEffect
from .registry import HandlerProber, Registries, Registry, default_registries
from .sources import AudioSource, ColourSource, ImageSource, VideoSource
from .transitions import CrossfadeTransition

__all__ = [
    'AudioSource',
    'ColourSource',
    'CrossfadeTransition',
    'EffectHandler',
    'FadeEffect',
    'HandlerProber',
    'ImageSource',
    'Registries',
    'Registry',
    'SourceHandler',
    'StreamPair',
    'TransitionHandler',
    'TransitionInputs',
    'TransitionOutput',
    'VideoSource',
    'default_registries',
]
