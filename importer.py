# =============================
# File import — PLY point clouds / meshes and images
# =============================
"""
``load_file(path)`` returns a ``PlyImport`` or an ``ImageImport``
depending on the file extension.

A PLY vertex that is referenced by any face is a *face vertex* and is
drawn by the face wireframe pass; all other vertices are *point vertices*
and go through the expander.  Faces are tessellated as triangle fans.
"""

import logging
import os
from dataclasses import dataclass

import cv2
import numpy as np
from plyfile import PlyData

from pointcloud import pack_vertices, empty_vertices

log = logging.getLogger(__name__)

PLY_EXTENSIONS = (".ply",)
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")

_FACE_INDEX_PROPS = ("vertex_indices", "vertex_index")


@dataclass
class PlyImport:
    path: str
    point_vertices: np.ndarray     # VERTEX_DTYPE, fed to the expander
    face_vertices: np.ndarray      # VERTEX_DTYPE, referenced by faces
    face_indices: np.ndarray       # uint32, triangle list into face_vertices


@dataclass
class ImageImport:
    path: str
    image: np.ndarray              # (H, W, 3) uint8 RGB


def load_file(path):
    """Import a PLY or image file based on its extension."""
    path = os.fspath(path)
    ext = os.path.splitext(path)[1].lower()
    if ext not in PLY_EXTENSIONS + IMAGE_EXTENSIONS:
        raise ValueError(
            f"Unknown file extension '{ext or 'no_extension'}' in file: "
            f"'{path}'")
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")

    if ext in PLY_EXTENSIONS:
        return load_ply(path)
    return load_image(path)


def load_image(path):
    bgr = cv2.imread(path, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ValueError(f"Could not decode image: {path}")
    rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
    log.info("Image imported: %s (%dx%d)", path, rgb.shape[1], rgb.shape[0])
    return ImageImport(path, rgb)


def _vertex_colors(vertex, n):
    names = set(vertex.dtype.names or [])
    if not {"red", "green", "blue"} <= names:
        return np.ones((n, 3), dtype=np.float32)
    rgb = np.stack([vertex["red"], vertex["green"], vertex["blue"]], axis=1)
    if np.issubdtype(rgb.dtype, np.integer):
        return rgb.astype(np.float32) / 255.0
    return rgb.astype(np.float32)


def _face_lists(ply):
    if "face" not in ply:
        return []
    face = ply["face"].data
    names = face.dtype.names or ()
    for prop in _FACE_INDEX_PROPS:
        if prop in names:
            return [np.asarray(f, dtype=np.int64) for f in face[prop]]
    raise ValueError(
        f"PLY face element has none of {_FACE_INDEX_PROPS}: {names}")


def triangulate_faces(faces, n_vertices):
    """Split vertices into face/point sets and fan-triangulate faces.

    Returns ``(face_vertex_ids, face_indices)``: the original vertex ids
    used by faces in order of first appearance, and a uint32 triangle
    list indexing into that order.
    """
    if not faces:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.uint32)

    flat = np.concatenate(faces)
    if flat.size and (flat.min() < 0 or flat.max() >= n_vertices):
        raise ValueError(
            f"face index out of range [0, {n_vertices}): "
            f"{flat.min()}..{flat.max()}")

    # Renumber in order of first appearance
    uniq, first = np.unique(flat, return_index=True)
    face_vertex_ids = uniq[np.argsort(first)]
    remap = np.empty(n_vertices, dtype=np.int64)
    remap[face_vertex_ids] = np.arange(len(face_vertex_ids))

    tris = []
    for f in faces:
        if len(f) < 3:
            continue
        f = remap[f]
        k = len(f) - 2
        fan = np.empty((k, 3), dtype=np.int64)
        fan[:, 0] = f[0]
        fan[:, 1] = f[1:-1]
        fan[:, 2] = f[2:]
        tris.append(fan)

    if not tris:
        return face_vertex_ids, np.empty(0, dtype=np.uint32)
    return face_vertex_ids, np.concatenate(tris).ravel().astype(np.uint32)


def load_ply(path):
    """Read a PLY file into point vertices and an indexed face mesh."""
    ply = PlyData.read(path)
    if "vertex" not in ply:
        raise ValueError(f'PLY file has no "vertex" element: {path}')

    vertex = ply["vertex"].data
    names = set(vertex.dtype.names or [])
    if not {"x", "y", "z"} <= names:
        raise ValueError(f"PLY is missing x/y/z fields: {path}")
    n = len(vertex)

    positions = np.stack([vertex["x"], vertex["y"], vertex["z"]],
                         axis=1).astype(np.float32)
    all_vertices = pack_vertices(positions, _vertex_colors(vertex, n))

    face_ids, face_indices = triangulate_faces(_face_lists(ply), n)
    used = np.zeros(n, dtype=bool)
    used[face_ids] = True

    point_vertices = all_vertices[~used]
    face_vertices = (all_vertices[face_ids] if len(face_ids)
                     else empty_vertices(0))

    log.info("PLY imported: %s (%d points, %d face vertices, "
             "%d triangles)", path, len(point_vertices),
             len(face_vertices), len(face_indices) // 3)
    return PlyImport(path, point_vertices, face_vertices, face_indices)
