"""Deterministic density clustering over rounded, L2-normalized embeddings.

Cluster ids are a pure function of the rounded centroid, so identical
membership and vectors always produce the same ``cl_`` id across runs.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from reviewlens.core.config import settings
from reviewlens.core.errors import ConsistencyError
from reviewlens.services.normalizer import NormalizedReview, sha256_hex

logger = logging.getLogger(__name__)

UNVISITED = -99
NOISE = -1
CENTROID_PLACES = 6


@dataclass
class Cluster:
    id: str
    centroid: List[float]
    member_review_ids: List[str]
    size: int


@dataclass
class ClusteringResult:
    clusters: List[Cluster] = field(default_factory=list)
    noise_ids: List[str] = field(default_factory=list)
    algorithm: str = "dbscan"


def cosine_distance_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    matrix = np.asarray(vectors, dtype=np.float64)
    distances = 1.0 - matrix @ matrix.T
    np.fill_diagonal(distances, 0.0)
    return distances


def neighbor_lists(
    distances: np.ndarray, reviews: Sequence[NormalizedReview], eps: float
) -> List[List[int]]:
    """Neighbors within ``eps`` for every point, each list sorted by ``(body_sha, id)``."""

    keys = [(review.body_sha, review.id) for review in reviews]
    out: List[List[int]] = []
    for i in range(len(reviews)):
        near = [j for j in np.flatnonzero(distances[i] <= eps).tolist() if j != i]
        near.sort(key=lambda j: keys[j])
        out.append(near)
    return out


def dbscan_deterministic(
    vectors: Sequence[Sequence[float]],
    reviews: Sequence[NormalizedReview],
    eps: float,
    min_pts: int,
) -> List[int]:
    """Label every point with a cluster index or ``NOISE``.

    Points are visited in input order. A point is core when its neighborhood,
    itself included, holds at least ``min_pts`` points. Noise reached from a
    core point becomes a border member of that cluster but is never expanded.
    """

    n = len(vectors)
    if n == 0:
        return []
    neighbors = neighbor_lists(cosine_distance_matrix(vectors), reviews, eps)
    labels = [UNVISITED] * n
    cluster_index = 0

    for i in range(n):
        if labels[i] != UNVISITED:
            continue
        if len(neighbors[i]) + 1 < min_pts:
            labels[i] = NOISE
            continue

        labels[i] = cluster_index
        queue = list(neighbors[i])
        position = 0
        while position < len(queue):
            j = queue[position]
            position += 1
            if labels[j] == NOISE:
                labels[j] = cluster_index
                continue
            if labels[j] != UNVISITED:
                continue
            labels[j] = cluster_index
            if len(neighbors[j]) + 1 >= min_pts:
                queue.extend(neighbors[j])
        cluster_index += 1

    return labels


def hdbscan_labels(
    vectors: Sequence[Sequence[float]],
    min_cluster_size: int,
    min_samples: Optional[int] = None,
) -> List[int]:
    from sklearn.cluster import HDBSCAN

    n = len(vectors)
    min_cluster_size = max(2, min_cluster_size)
    if n < max(min_cluster_size, min_samples or 1):
        return [NOISE] * n

    distances = np.clip(cosine_distance_matrix(vectors), 0.0, None)
    clusterer = HDBSCAN(
        min_cluster_size=min_cluster_size,
        min_samples=min_samples,
        metric="precomputed",
    )
    labels = clusterer.fit_predict(distances)
    return [int(label) if label >= 0 else NOISE for label in labels]


def centroid6(vectors: Sequence[Sequence[float]]) -> List[float]:
    count = len(vectors)
    dimension = len(vectors[0])
    return [
        round(sum(float(vector[d]) for vector in vectors) / count, CENTROID_PLACES)
        for d in range(dimension)
    ]


def vector_hash(vector: Sequence[float]) -> str:
    encoded = json.dumps(list(vector), separators=(",", ":"))
    return sha256_hex(encoded)[:12]


def cluster_id_from_centroid(centroid: Sequence[float]) -> str:
    return "cl_" + vector_hash(centroid)


def _build_clusters(
    groups: Dict[int, List[int]],
    vectors: Sequence[Sequence[float]],
    reviews: Sequence[NormalizedReview],
) -> List[Cluster]:
    by_id: Dict[str, Cluster] = {}
    for members in groups.values():
        centroid = centroid6([vectors[i] for i in members])
        cluster_id = cluster_id_from_centroid(centroid)
        member_ids = [reviews[i].id for i in members]
        existing = by_id.get(cluster_id)
        if existing is not None:
            # Identical centroids hash to one id; keep a single cluster.
            seen = set(existing.member_review_ids)
            merged = existing.member_review_ids + [rid for rid in member_ids if rid not in seen]
            existing.member_review_ids = merged
            existing.size = len(merged)
            continue
        by_id[cluster_id] = Cluster(
            id=cluster_id,
            centroid=centroid,
            member_review_ids=member_ids,
            size=len(member_ids),
        )
    return [by_id[key] for key in sorted(by_id)]


def cluster_reviews(
    reviews: Sequence[NormalizedReview],
    vectors: Sequence[Sequence[float]],
    algorithm: Optional[str] = None,
    eps: Optional[float] = None,
    min_pts: Optional[int] = None,
    include_noise: Optional[bool] = None,
) -> ClusteringResult:
    """Cluster ``reviews`` (canonical order) by their embedding ``vectors``."""

    if len(reviews) != len(vectors):
        raise ConsistencyError(
            f"reviews.length ({len(reviews)}) != vectors.length ({len(vectors)})"
        )
    algorithm = algorithm or settings.CLUSTER_ALGORITHM
    include_noise = settings.CLUSTER_INCLUDE_NOISE if include_noise is None else include_noise
    if not reviews:
        return ClusteringResult(algorithm=algorithm)

    dimensions = {len(vector) for vector in vectors}
    if len(dimensions) != 1:
        raise ConsistencyError(f"Mixed vector dimensions: {sorted(dimensions)}")

    if algorithm == "hdbscan":
        labels = hdbscan_labels(
            vectors,
            min_cluster_size=settings.HDBSCAN_MIN_CLUSTER_SIZE,
            min_samples=settings.HDBSCAN_MIN_SAMPLES,
        )
    elif algorithm == "dbscan":
        labels = dbscan_deterministic(
            vectors,
            reviews,
            eps=settings.CLUSTER_EPS if eps is None else eps,
            min_pts=settings.CLUSTER_MIN_PTS if min_pts is None else min_pts,
        )
    else:
        raise ConsistencyError(f"Unknown clustering algorithm: {algorithm}")

    groups: Dict[int, List[int]] = {}
    noise: List[int] = []
    for index, label in enumerate(labels):
        if label == NOISE:
            noise.append(index)
        else:
            groups.setdefault(label, []).append(index)

    if include_noise:
        next_label = max(groups, default=-1) + 1
        for offset, index in enumerate(noise):
            groups[next_label + offset] = [index]
        noise = []

    clusters = _build_clusters(groups, vectors, reviews)
    logger.info(
        "Clustered %s reviews into %s clusters (%s noise, algorithm=%s)",
        len(reviews),
        len(clusters),
        len(noise),
        algorithm,
    )
    return ClusteringResult(
        clusters=clusters,
        noise_ids=[reviews[i].id for i in noise],
        algorithm=algorithm,
    )
