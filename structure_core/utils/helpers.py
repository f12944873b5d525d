"""Numeric helpers shared by the analysis modules."""

from typing import Optional

import numpy as np


def tm_d0(length: int) -> float:
    """Distance scale for a TM-score over ``length`` residue pairs.

    d0 = max(1.24 × ³√(L − 15) − 1.8, 0.5)

    The real cube root keeps short chains (L < 15) on the 0.5 Å floor.
    """
    return float(max(1.24 * np.cbrt(length - 15) - 1.8, 0.5))


def tm_score_terms(
    coords1: np.ndarray,
    coords2: np.ndarray,
    d0: Optional[float] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Per-pair TM-score terms for positionally matched coordinates.

    Args:
        coords1: First coordinate array, shape (n, 3).
        coords2: Second coordinate array, shape (n, 3).
        d0: Distance scale; defaults to tm_d0(n).

    Returns:
        Tuple of (terms, valid_mask). Terms are 1 / (1 + (d_i / d0)²);
        pairs with a non-finite distance are zero and masked out.
    """
    if coords1.shape != coords2.shape:
        raise ValueError(
            f"Coordinate arrays must have same shape: {coords1.shape} vs {coords2.shape}"
        )

    if d0 is None:
        d0 = tm_d0(len(coords1))

    with np.errstate(over="ignore", invalid="ignore"):
        distances = np.linalg.norm(coords1 - coords2, axis=1)
    valid = np.isfinite(distances)

    terms = np.zeros(len(distances))
    terms[valid] = 1.0 / (1.0 + (distances[valid] / d0) ** 2)
    return terms, valid


def kabsch_rotation(mobile: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Rotation that best maps centred ``mobile`` points onto ``target``.

    Both inputs are (n, 3) and are centred here. A proper rotation is
    always returned (det = +1), never a reflection.
    """
    a = mobile - mobile.mean(axis=0)
    b = target - target.mean(axis=0)

    u, _, vt = np.linalg.svd(a.T @ b)
    sign = np.sign(np.linalg.det(vt.T @ u.T)) or 1.0
    correction = np.diag([1.0, 1.0, sign])

    return vt.T @ correction @ u.T


def superimpose(
    mobile: np.ndarray,
    target: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Rigidly fit ``mobile`` onto ``target`` (both (n, 3), rows matched).

    Returns:
        (fitted, rotation, translation), with
        fitted = mobile @ rotation.T + translation.
    """
    rotation = kabsch_rotation(mobile, target)
    translation = target.mean(axis=0) - mobile.mean(axis=0) @ rotation.T
    return mobile @ rotation.T + translation, rotation, translation


def rmsd(coords1: np.ndarray, coords2: np.ndarray) -> float:
    """RMSD between two matched coordinate sets.

    RMSD = sqrt(mean(sum((r1 - r2)^2)))
    """
    if len(coords1) != len(coords2):
        raise ValueError(
            f"Coordinate arrays must have same length: {len(coords1)} vs {len(coords2)}"
        )
    diff = coords1 - coords2
    return float(np.sqrt(np.mean(np.sum(diff ** 2, axis=1))))
