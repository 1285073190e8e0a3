"""
Field Visualization

Plotting functions for density, speed, and vorticity fields of a
SimulationState. Only reads the state's field accessors.
"""

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_solver.observables import compute_vorticity


def _masked(field, geometry):
    return np.ma.masked_array(field, mask=geometry)


def plot_scalar_field(ax, field, geometry=None, title="", cmap="viridis", symmetric=False):
    """Draw one scalar field on ax, hiding solid cells."""
    if geometry is not None:
        field = _masked(field, geometry)

    kwargs = {}
    if symmetric:
        vmax = float(np.max(np.abs(field))) or 1.0
        kwargs = {"vmin": -vmax, "vmax": vmax}

    image = ax.imshow(field, origin="lower", cmap=cmap, **kwargs)
    ax.set_title(title)
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    plt.colorbar(image, ax=ax, shrink=0.8)
    return image


def plot_state(state, save_path=None, show=False):
    """
    Plot density, speed and vorticity of a simulation state.

    Parameters
    ----------
    state : SimulationState
        State to plot
    save_path : str, optional
        Path to save figure
    show : bool
        Open an interactive window

    Returns
    -------
    fig : matplotlib.figure.Figure
    """
    snapshot = state.snapshot()
    ux, uy = snapshot["velocity"]
    geometry = snapshot["geometry"]

    fig, axes = plt.subplots(1, 3, figsize=(15, 4))

    plot_scalar_field(axes[0], snapshot["density"], geometry, "Density")
    plot_scalar_field(axes[1], snapshot["speed"], geometry, "Speed", cmap="magma")
    plot_scalar_field(axes[2], compute_vorticity(ux, uy, state.delta_x), geometry,
                      "Vorticity", cmap="RdBu_r", symmetric=True)

    fig.suptitle(f"t = {snapshot['time']:g}")
    plt.tight_layout()

    if save_path:
        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved figure to {save_path}")

    if show and matplotlib.get_backend().lower() != "agg":
        plt.show()

    return fig
