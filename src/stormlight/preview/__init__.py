"""Preview windows and debug visualization.

Components:
    display: Matplotlib preview of the current render
    debug: Photon and KD-tree debug geometry
"""

from .debug import kdtree_leaf_edges, photon_segments, plot_photon_map
from .display import show_preview

__all__ = [
    "kdtree_leaf_edges",
    "photon_segments",
    "plot_photon_map",
    "show_preview",
]
