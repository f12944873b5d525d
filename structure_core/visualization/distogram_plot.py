"""Distogram heatmap plotting."""

from typing import Optional

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.colors as mcolors

from structure_core.core.distogram import DistogramMatrix

# Dark blue for close contacts through to lavender for distant residues.
DISTOGRAM_COLORS = [
    (0.0, "#00008B"),
    (0.2, "#4B0082"),
    (0.4, "#800080"),
    (0.6, "#9400D3"),
    (0.8, "#9932CC"),
    (1.0, "#E6E6FA"),
]


class DistogramVisualizer:
    """Plot distograms as residue-by-residue heatmaps."""

    def __init__(self, cmap: Optional[mcolors.Colormap] = None):
        """Initialize the visualizer.

        Args:
            cmap: Colormap; defaults to the distogram colour scale.
        """
        self.cmap = cmap or mcolors.LinearSegmentedColormap.from_list(
            "distogram", DISTOGRAM_COLORS
        )

    def plot(
        self,
        distogram: DistogramMatrix,
        title: str = "Residue Distance Matrix",
        figsize: tuple[int, int] = (8, 8),
        vmax: Optional[float] = None,
    ) -> plt.Figure:
        """Plot a distogram.

        Args:
            distogram: DistogramMatrix to plot.
            title: Plot title.
            figsize: Figure size.
            vmax: Upper end of the colour scale; defaults to the matrix max.

        Returns:
            Matplotlib Figure.
        """
        fig, ax = plt.subplots(figsize=figsize)

        n = distogram.n_residues
        # Axes are labelled by residue rank, 1..N.
        extent = (0.5, n + 0.5, 0.5, n + 0.5)

        im = ax.imshow(
            distogram.values,
            cmap=self.cmap,
            aspect="equal",
            origin="lower",
            interpolation="nearest",
            extent=extent,
            vmin=0.0,
            vmax=vmax if vmax is not None else (float(np.max(distogram.values)) or 1.0),
        )

        ax.set_xlabel("Residue")
        ax.set_ylabel("Residue")
        ax.set_title(title)

        cbar = plt.colorbar(im, ax=ax, shrink=0.8)
        cbar.set_label("Distance (Å)")

        plt.tight_layout()
        return fig

    def save(
        self,
        distogram: DistogramMatrix,
        path: str,
        title: Optional[str] = None,
        dpi: int = 150,
    ) -> None:
        """Plot a distogram and write it to an image file."""
        fig = self.plot(distogram, title=title or f"Residue Distance Matrix: {distogram.structure_id}")
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
        plt.close(fig)
