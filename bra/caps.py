# SPDX-License-Identifier: GPL-3.0-or-later OR LicenseRef-Commercial
"""Capabilities (Caps) describing the format found at the head of a stream.

Caps are a small set of RDF triples about one subject (the format), backed by
an rdflib Graph so they can be exported as Turtle next to other metadata.
"""

from __future__ import annotations

import json
from typing import Any

from rdflib import Graph, Literal, Namespace, URIRef
from rdflib.namespace import DCTERMS, RDF, RDFS

SCHEMA = Namespace("https://schema.org/")
BRA = Namespace("urn:bra:caps#")


class Caps:
    """Describes the type of data found in a stream.

    Args:
        media_type: MIME type, stored as dcterms:format.
        name: Short name, stored as rdfs:label; also names the subject node.
        description: Human readable summary (rdfs:comment).
        extensions: Usual file extensions (schema:fileExtension).
    """

    def __init__(
        self,
        media_type: str,
        name: str,
        description: str | None = None,
        extensions: tuple[str, ...] = (),
    ):
        self._graph = Graph()
        self._graph.bind("bra", BRA)
        self._graph.bind("dcterms", DCTERMS)
        self._graph.bind("schema", SCHEMA)

        self._node = BRA[name]
        self._graph.add((self._node, RDF.type, BRA.Caps))
        self._graph.add((self._node, DCTERMS.format, Literal(media_type)))
        self._graph.add((self._node, RDFS.label, Literal(name)))
        if description:
            self._graph.add((self._node, RDFS.comment, Literal(description)))
        for extension in extensions:
            self._graph.add((self._node, SCHEMA.fileExtension, Literal(extension)))

    @property
    def media_type(self) -> str:
        return str(self._graph.value(self._node, DCTERMS.format))

    @property
    def name(self) -> str:
        return str(self._graph.value(self._node, RDFS.label))

    @property
    def description(self) -> str | None:
        value = self._graph.value(self._node, RDFS.comment)
        return str(value) if value else None

    @property
    def extensions(self) -> tuple[str, ...]:
        return tuple(sorted(str(o) for o in self._graph.objects(self._node, SCHEMA.fileExtension)))

    @property
    def uri(self) -> str:
        return str(self._node)

    @property
    def graph(self) -> Graph:
        return self._graph

    def __repr__(self) -> str:
        return f"Caps(media_type={self.media_type}, name={self.name})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Caps):
            return NotImplemented
        return set(self._graph) == set(other._graph)

    def __hash__(self) -> int:
        return hash(self.uri)


def caps_triples(caps: Caps) -> list[tuple[str, str, str]]:
    """Export triples as CURIE strings, e.g. ("bra:png", "rdfs:label", "png")."""
    manager = caps.graph.namespace_manager
    triples = []
    for s, p, o in caps.graph:
        obj = manager.normalizeUri(o) if isinstance(o, URIRef) else str(o)
        triples.append((manager.normalizeUri(s), manager.normalizeUri(p), obj))
    return sorted(triples)


def caps_to_turtle(caps: Caps) -> str:
    """Serialize caps to Turtle format."""
    return caps.graph.serialize(format="turtle")


def summarize_caps(caps: Caps, **extra: Any) -> str:
    """Return a JSON summary of the caps, plus any extra fields (e.g. byte counts)."""
    info: dict[str, Any] = {
        "media_type": caps.media_type,
        "name": caps.name,
        "description": caps.description,
        "extensions": list(caps.extensions),
    }
    info.update(extra)
    return json.dumps(info, indent=2)
