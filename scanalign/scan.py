"""Scan data and mesh preparation."""

import numpy as np
import open3d as o3d

from .utils import setup_logger

logger = setup_logger(__name__)


def _edge_lengths(vertices, faces):
    """Edge lengths per face, shape (F, 3): edges (0,1), (1,2), (2,0)."""
    a = vertices[faces[:, 0]]
    b = vertices[faces[:, 1]]
    c = vertices[faces[:, 2]]
    return np.stack([
        np.linalg.norm(a - b, axis=1),
        np.linalg.norm(b - c, axis=1),
        np.linalg.norm(c - a, axis=1),
    ], axis=1)


def clean_faces(vertices, faces, min_aspect=0.2):
    """
    Remove badly shaped triangles and the vertices they leave behind.

    A face is removed when its shortest edge is less than ``min_aspect``
    times its longest edge.

    Returns:
        Tuple of (vertices, faces) with faces re-indexed
    """
    vertices = np.asarray(vertices, dtype=float)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    if faces.shape[0] == 0:
        return vertices, faces

    lengths = _edge_lengths(vertices, faces)
    max_edge = lengths.max(axis=1)
    min_edge = lengths.min(axis=1)
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = np.where(max_edge > 0, min_edge / max_edge, 0.0)
    keep = ratio >= min_aspect
    faces = faces[keep]

    # Drop vertices no longer referenced by any face
    used = np.zeros(vertices.shape[0], dtype=bool)
    used[faces.ravel()] = True
    remap = np.full(vertices.shape[0], -1, dtype=np.int64)
    remap[used] = np.arange(np.count_nonzero(used))

    removed = int(np.count_nonzero(~keep))
    if removed:
        logger.info("clean_faces: removed %d faces and %d vertices",
                    removed, int(np.count_nonzero(~used)))
    return vertices[used], remap[faces]


def average_edge_length(vertices, faces):
    """Mean edge length over all half-edges of the mesh (0 for no faces)."""
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    if faces.shape[0] == 0:
        return 0.0
    return float(_edge_lengths(np.asarray(vertices, dtype=float), faces).mean())


def boundary_vertices(n_vertices, faces):
    """Boolean mask of vertices lying on an edge used by exactly one face."""
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    boundary = np.zeros(n_vertices, dtype=bool)
    if faces.shape[0] == 0:
        return boundary
    edges = np.concatenate([faces[:, [0, 1]], faces[:, [1, 2]], faces[:, [2, 0]]])
    edges = np.sort(edges, axis=1)
    unique_edges, counts = np.unique(edges, axis=0, return_counts=True)
    boundary[unique_edges[counts == 1].ravel()] = True
    return boundary


def vertex_normals(vertices, faces):
    """Area-weighted unit vertex normals (zero for isolated vertices)."""
    vertices = np.asarray(vertices, dtype=float)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    normals = np.zeros_like(vertices)
    if faces.shape[0] == 0:
        return normals
    a = vertices[faces[:, 0]]
    face_normals = np.cross(vertices[faces[:, 1]] - a, vertices[faces[:, 2]] - a)
    for k in range(3):
        np.add.at(normals, faces[:, k], face_normals)
    norms = np.linalg.norm(normals, axis=1, keepdims=True)
    np.divide(normals, norms, out=normals, where=norms > 0)
    return normals


class Scan:
    """
    Oriented point cloud of one scan.

    ``points``, ``normals`` and ``boundary`` are index-aligned. The
    registration core only reads world-space copies made with
    ``transformed``; a Scan itself is never moved.
    """

    def __init__(self, points, normals, boundary=None, average_vertex_distance=0.0, name=None):
        self.points = np.asarray(points, dtype=float).reshape(-1, 3)
        self.normals = np.asarray(normals, dtype=float).reshape(-1, 3)
        if boundary is None:
            boundary = np.zeros(self.points.shape[0], dtype=bool)
        self.boundary = np.asarray(boundary, dtype=bool).reshape(-1)
        self.average_vertex_distance = float(average_vertex_distance)
        self.name = name

        n = self.points.shape[0]
        if self.normals.shape[0] != n or self.boundary.shape[0] != n:
            raise ValueError(
                f"Scan arrays must be index-aligned: {n} points, "
                f"{self.normals.shape[0]} normals, {self.boundary.shape[0]} boundary flags"
            )

    @classmethod
    def from_mesh(cls, vertices, faces, center=True, clean=True, min_aspect=0.2, name=None):
        """
        Build a scan from a triangle mesh.

        Args:
            vertices: (V x 3) vertex positions
            faces: (F x 3) triangle vertex indices
            center: Move the scan to its centre of gravity
            clean: Remove faces with edge ratio below ``min_aspect``
            min_aspect: Face aspect-ratio threshold used by ``clean``
            name: Optional label, e.g. the source file name
        """
        vertices = np.asarray(vertices, dtype=float)
        faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        if clean:
            vertices, faces = clean_faces(vertices, faces, min_aspect)
        if center and vertices.shape[0] > 0:
            vertices = vertices - vertices.mean(axis=0)

        return cls(
            vertices,
            vertex_normals(vertices, faces),
            boundary_vertices(vertices.shape[0], faces),
            average_edge_length(vertices, faces),
            name=name,
        )

    @classmethod
    def from_file(cls, filepath, center=True, clean=True, min_aspect=0.2):
        """Load a triangle mesh (or, failing that, a point cloud) with Open3D."""
        mesh = o3d.io.read_triangle_mesh(str(filepath))
        if mesh.has_triangles():
            scan = cls.from_mesh(np.asarray(mesh.vertices), np.asarray(mesh.triangles),
                                 center=center, clean=clean, min_aspect=min_aspect,
                                 name=str(filepath))
        else:
            scan = cls._from_point_file(filepath, center)
        logger.info("%s: %d vertices, average vertex distance %.5f",
                    filepath, len(scan), scan.average_vertex_distance)
        return scan

    @classmethod
    def _from_point_file(cls, filepath, center):
        pcd = o3d.io.read_point_cloud(str(filepath))
        points = np.asarray(pcd.points)
        if points.shape[0] == 0:
            raise ValueError(f"No points could be read from {filepath}")
        if center:
            points = points - points.mean(axis=0)
            pcd.points = o3d.utility.Vector3dVector(points)
        if not pcd.has_normals():
            pcd.estimate_normals(search_param=o3d.geometry.KDTreeSearchParamKNN(knn=30))
            pcd.orient_normals_towards_camera_location(camera_location=np.array([0., 0., 0.]))

        # Without faces, use the mean nearest-neighbour spacing
        spacing = np.asarray(pcd.compute_nearest_neighbor_distance())
        return cls(points, np.asarray(pcd.normals), None,
                   float(spacing.mean()) if spacing.size else 0.0, name=str(filepath))

    def transformed(self, transformation):
        """World-space copy: points moved, normals rotated, flags unchanged."""
        return Scan(
            transformation.transform_points(self.points),
            transformation.transform_vectors(self.normals),
            self.boundary.copy(),
            self.average_vertex_distance,
            name=self.name,
        )

    def to_o3d(self, points=None, color=None):
        """
        Convert to an Open3D PointCloud.

        Args:
            points: Optional custom points array (default: self.points)
            color: Optional uniform color [r, g, b]
        """
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(self.points if points is None else points)
        pcd.normals = o3d.utility.Vector3dVector(self.normals)
        if color is not None:
            pcd.paint_uniform_color(color)
        return pcd

    def __len__(self):
        return self.points.shape[0]

    def __repr__(self):
        return f"Scan(name={self.name!r}, points={len(self)})"
