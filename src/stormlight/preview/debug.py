"""Debug geometry for the photon map.

Photons and KD-tree boxes are flattened into NumPy arrays so they can be
drawn by any plotting backend. Nothing here feeds back into rendering.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from src.stormlight.core.kdtree import KDTree

# Photon segment length as a fraction of the tree's largest dimension
PHOTON_SEGMENT_SCALE = 0.02


def photon_segments(
    kdtree: KDTree,
    energy_scale: float = 1.0,
    segment_scale: float = PHOTON_SEGMENT_SCALE,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """One short segment per stored photon, pointing back where it came from.

    Photon energies are tiny (light power divided by the photon budget), so
    they are multiplied by ``energy_scale`` (usually the budget) to get
    displayable colours.

    Args:
        kdtree: The photon map.
        energy_scale: Multiplier applied to every photon's energy.
        segment_scale: Segment length relative to the tree's largest dimension.

    Returns:
        Tuple (segments, colors) with shapes (N, 2, 3) and (N, 3).
    """
    photons = list(kdtree.iter_photons())
    if not photons:
        return np.zeros((0, 2, 3)), np.zeros((0, 3))

    length = segment_scale * kdtree.bbox.max_dim()
    positions = np.array([p.position for p in photons])
    directions = np.array([p.direction_from for p in photons])
    energies = np.array([p.energy for p in photons])

    segments = np.stack([positions, positions - directions * length], axis=1)
    return segments, energies * energy_scale


def kdtree_leaf_edges(kdtree: KDTree) -> npt.NDArray[np.float64]:
    """Edges of every leaf box, shape (12 * leaves, 2, 3)."""
    edges = [
        np.stack([a, b])
        for leaf in kdtree.iter_leaves()
        for a, b in leaf.bbox.edges()
    ]
    return np.array(edges).reshape(-1, 2, 3)


def plot_photon_map(
    kdtree: KDTree,
    *,
    energy_scale: float = 1.0,
    show_leaves: bool = True,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Draw photons and KD-tree leaves in a Matplotlib 3D axis."""
    import matplotlib.pyplot as plt
    from mpl_toolkits.mplot3d.art3d import Line3DCollection

    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(projection="3d")

    segments, colors = photon_segments(kdtree, energy_scale)
    if len(segments):
        ax.add_collection3d(Line3DCollection(segments, colors=np.clip(colors, 0.0, 1.0)))

    if show_leaves:
        edges = kdtree_leaf_edges(kdtree)
        ax.add_collection3d(Line3DCollection(edges, colors="0.6", linewidths=0.3))

    lo, hi = kdtree.min, kdtree.max
    ax.set_xlim(lo[0], hi[0])
    ax.set_ylim(lo[1], hi[1])
    ax.set_zlim(lo[2], hi[2])
    ax.set_title(f"{len(segments)} photons")

    plt.tight_layout()
    plt.show(block=block)
