"""
Embedding matching module.

Compares a live face embedding with the enrolled reference using cosine
similarity. The raw score is returned; acceptance thresholds belong to the
caller.
"""

import numpy as np
from typing import Sequence, Union
from ..errors import DimensionMismatch, ZeroNormEmbedding

Vector = Union[np.ndarray, Sequence[float]]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Compute cosine similarity between two embeddings.

    Args:
        a: First embedding
        b: Second embedding

    Returns:
        dot(a, b) / (|a| * |b|), in range [-1, 1]

    Raises:
        DimensionMismatch: If the vectors differ in length
        ZeroNormEmbedding: If either vector has zero norm
    """
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)

    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(a.shape[0], b.shape[0])

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        raise ZeroNormEmbedding('Cannot compute cosine similarity of a zero vector')

    return float(np.dot(a, b)) / (norm_a * norm_b)
