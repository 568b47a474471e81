"""
Kind -> handler registries.

Built once at startup and shared read-only between renders.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List

from ..document import Source
from ..errors import LoweringError
from ..probe import MediaInfo
from .base import EffectHandler, SourceHandler, TransitionHandler
from .effects import FadeEffect
from .sources import AudioSource, ColourSource, ImageSource, VideoSource
from .transitions import CrossfadeTransition


class Registry(object):
    """An immutable mapping of kind strings to handler instances."""

    def __init__(self, role: str, handlers: Iterable):
        table: Dict[str, object] = {}
        for handler in handlers:
            if not handler.kind:
                raise ValueError(f"{type(handler).__name__} does not declare a kind")
            if handler.kind in table:
                raise ValueError(f"Duplicate {role} handler for kind '{handler.kind}'")
            table[handler.kind] = handler
        self.role = role
        self._handlers = MappingProxyType(table)

    def get(self, kind: str):
        handler = self._handlers.get(kind)
        if handler is None:
            raise LoweringError(
                f"No {self.role} handler registered for kind '{kind}' "
                f"(known kinds: {', '.join(self.kinds) or 'none'})"
            )
        return handler

    @property
    def kinds(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, kind: str) -> bool:
        return kind in self._handlers


class Registries(object):
    def __init__(self, sources: Registry, effects: Registry, transitions: Registry):
        self.sources = sources
        self.effects = effects
        self.transitions = transitions


class HandlerProber(object):
    """Routes probe(source) through the source handler registered for its kind."""

    def __init__(self, registries: Registries, media_prober):
        self.registries = registries
        self.media_prober = media_prober

    def probe(self, source: Source) -> MediaInfo:
        handler: SourceHandler = self.registries.sources.get(source.kind)
        return handler.probe(source, self.media_prober)


def default_registries() -> Registries:
    source_handlers: List[SourceHandler] = [VideoSource(), ImageSource(), ColourSource(), AudioSource()]
    effect_handlers: List[EffectHandler] = [FadeEffect()]
    transition_handlers: List[TransitionHandler] = [CrossfadeTransition()]
    return Registries(
        sources=Registry('source', source_handlers),
        effects=Registry('effect', effect_handlers),
        transitions=Registry('transition', transition_handlers),
    )
