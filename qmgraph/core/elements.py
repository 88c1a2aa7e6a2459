"""
Identity & Provenance

Shared value objects attached to every quality model element:

- Identifiers: opaque unique strings, generated when not supplied
- Tag, Annotation: immutable value objects
- Source: a provenance root (it never originates from another Source)
- Entity: the product part a Factor or Measure characterizes

Two capability sets are used instead of a single base class:
    Annotated        -> identifier, tags, annotations (Source)
    ProvenanceHolder -> Annotated + originates_from (every other element)
"""

import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


def new_identifier() -> str:
    """Generate an opaque unique identifier"""
    return str(uuid.uuid4())


def add_unique(items: list, item) -> bool:
    """Append item if it is not None and not already present; report whether it was added"""
    if item is None or item in items:
        return False
    items.append(item)
    return True


# =============================================================================
# Value Objects
# =============================================================================

@dataclass(frozen=True)
class Tag:
    """Free-form classification label"""
    name: str
    description: str = ""

    def to_dict(self) -> Dict:
        return {'name': self.name, 'description': self.description}


@dataclass(frozen=True)
class Annotation:
    """Key/value note attached to an element"""
    key: str
    value: str = ""

    def to_dict(self) -> Dict:
        return {'key': self.key, 'value': self.value}


# =============================================================================
# Capabilities
# =============================================================================

class Annotated:
    """
    Identity plus tags and annotations.

    The identifier can be assigned exactly once; equality and hashing are by
    identifier so elements behave as set members.
    """

    def __init__(self, identifier: Optional[str] = None):
        self.identifier = identifier or new_identifier()
        self._tags: List[Tag] = []
        self._annotations: List[Annotation] = []

    def __setattr__(self, name, value):
        if name == 'identifier' and 'identifier' in self.__dict__:
            raise AttributeError(f"identifier of {type(self).__name__} is immutable")
        super().__setattr__(name, value)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Annotated):
            return NotImplemented
        return type(self) is type(other) and self.identifier == other.identifier

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.identifier))

    @property
    def tags(self) -> Tuple[Tag, ...]:
        return tuple(self._tags)

    @property
    def annotations(self) -> Tuple[Annotation, ...]:
        return tuple(self._annotations)

    def add_tag(self, tag: Optional[Tag]) -> None:
        add_unique(self._tags, tag)

    def remove_tag(self, tag: Tag) -> None:
        if tag in self._tags:
            self._tags.remove(tag)

    def add_annotation(self, annotation: Optional[Annotation]) -> None:
        add_unique(self._annotations, annotation)

    def remove_annotation(self, annotation: Annotation) -> None:
        if annotation in self._annotations:
            self._annotations.remove(annotation)

    def _provenance_dict(self) -> Dict:
        return {
            'id': self.identifier,
            'tags': [t.to_dict() for t in self._tags],
            'annotations': [a.to_dict() for a in self._annotations],
        }


class ProvenanceHolder(Annotated):
    """Annotated element that can cite the Sources it originates from"""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(identifier)
        self._originates_from: List['Source'] = []

    @property
    def originates_from(self) -> Tuple['Source', ...]:
        return tuple(self._originates_from)

    def add_originates_from(self, source: Optional['Source']) -> None:
        add_unique(self._originates_from, source)

    def remove_originates_from(self, source: 'Source') -> None:
        if source in self._originates_from:
            self._originates_from.remove(source)

    def _provenance_dict(self) -> Dict:
        data = super()._provenance_dict()
        data['originates_from'] = [s.identifier for s in self._originates_from]
        return data


# =============================================================================
# Source & Entity
# =============================================================================

class Source(Annotated):
    """
    Provenance root: a document, standard or tool output an element cites.

    Sources implement only the Annotated capability; they have no
    originates_from collection to cite other Sources with.
    """

    def __init__(self, name: str, identifier: Optional[str] = None):
        super().__init__(identifier)
        self.name = name
        self.title: Optional[str] = None
        self.description: Optional[str] = None

    @classmethod
    def builder(cls, name: str, identifier: Optional[str] = None):
        from .model_builder import SourceBuilder
        return SourceBuilder(name, identifier)

    def to_dict(self) -> Dict:
        data = self._provenance_dict()
        data.update({'name': self.name, 'title': self.title, 'description': self.description})
        return data

    def __repr__(self) -> str:
        return f"Source(name={self.name!r}, id={self.identifier!r})"


class Entity(ProvenanceHolder):
    """Part of the product (class, method, document, ...) that is characterized"""

    def __init__(self, name: str, identifier: Optional[str] = None):
        super().__init__(identifier)
        self.name = name
        self.title: Optional[str] = None
        self.description: Optional[str] = None

    @classmethod
    def builder(cls, name: str, identifier: Optional[str] = None):
        from .model_builder import EntityBuilder
        return EntityBuilder(name, identifier)

    def to_dict(self) -> Dict:
        data = self._provenance_dict()
        data.update({'name': self.name, 'title': self.title, 'description': self.description})
        return data

    def __repr__(self) -> str:
        return f"Entity(name={self.name!r}, id={self.identifier!r})"
