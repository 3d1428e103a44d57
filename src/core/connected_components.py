"""
Face-connected component helpers.

Two faces are adjacent when they share an edge (i.e. a half-edge of one is
the opposite of a half-edge of the other).
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator

from .halfedge_mesh import NULL_FACE, NULL_HALFEDGE, TriangleMeshGraph


def _face_halfedges(mesh: TriangleMeshGraph, face: int) -> Iterator[int]:
    h0 = mesh.halfedge(face)
    h = h0
    while True:
        yield h
        h = mesh.next(h)
        if h == h0 or h == NULL_HALFEDGE:
            return


def enumerate_faces(seed_face: int, mesh: TriangleMeshGraph) -> Iterator[int]:
    """
    Yield every face of the component containing `seed_face`, once each.

    Breadth-first over edge adjacency; the seed comes first. This is a
    generator, so it can only be consumed once.
    """
    seed = int(seed_face)
    if seed == NULL_FACE:
        return
    seen = {seed}
    queue = deque([seed])
    while queue:
        f = queue.popleft()
        yield f
        for h in _face_halfedges(mesh, f):
            g = mesh.face(mesh.opposite(h))
            if g != NULL_FACE and g not in seen:
                seen.add(g)
                queue.append(g)


def component_vertices(faces: Iterable[int], mesh: TriangleMeshGraph) -> list[int]:
    """Vertices of the given faces in first-seen order, without duplicates."""
    order: list[int] = []
    seen: set[int] = set()
    for f in faces:
        for h in _face_halfedges(mesh, f):
            v = mesh.target(h)
            if v not in seen:
                seen.add(v)
                order.append(v)
    return order


def connected_components(mesh: TriangleMeshGraph) -> list[list[int]]:
    """All face components of the mesh, largest first (ties keep discovery order)."""
    assigned: set[int] = set()
    components: list[list[int]] = []
    for f in mesh.faces():
        if f in assigned:
            continue
        comp = list(enumerate_faces(f, mesh))
        assigned.update(comp)
        components.append(comp)
    components.sort(key=len, reverse=True)
    return components
