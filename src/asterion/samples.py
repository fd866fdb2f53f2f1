'''Batches of drawn bodies
Sample class definition: tabular export and quick-look plots'''

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING
from .config import config
if TYPE_CHECKING:
    from .assembler import OrbitResult, ClassificationResult

# element columns that can be plotted, with axis labels
_AXIS_LABELS = {
    'a': 'Semimajor axis [m]',
    'e': 'Eccentricity',
    'i': 'Inclination [deg]',
    'lan': 'Longitude of ascending node [deg]',
    'argp': 'Argument of periapsis [deg]',
    'mean_anomaly': 'Mean anomaly [deg]',
    'periapsis': 'Periapsis [m]',
    'apoapsis': 'Apoapsis [m]',
}


class Sample:
    """
    An ordered batch of (orbit, classification) draws.

    Attributes:
        draws: list of (OrbitResult, ClassificationResult) pairs (read-only view)
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, draws: Sequence[Tuple["OrbitResult", "ClassificationResult"]]):
        self._draws = tuple(draws)

    @property
    def orbits(self) -> List["OrbitResult"]:
        return [orbit for orbit, _ in self._draws]

    @property
    def classifications(self) -> List["ClassificationResult"]:
        return [kind for _, kind in self._draws]

    def __len__(self):
        return len(self._draws)

    def __iter__(self):
        return iter(self._draws)

    def __getitem__(self, index):
        return self._draws[index]

    def __repr__(self):
        return f"Sample({len(self)} draws)"

    # ========== EXPORT ==========
    def to_dataframe(self) -> pd.DataFrame:
        """
        Export the batch to a pandas DataFrame.

        Returns:
            DataFrame with one row per draw: group, central body, epoch,
            Keplerian elements (angles in degrees), periapsis/apoapsis,
            Cartesian state, classification, composition, density and size
        """
        rows = [{**orbit.to_dict(), **kind.to_dict()} for orbit, kind in self._draws]
        columns = ['group', 'central_body', 'epoch', 'a', 'e', 'i', 'lan', 'argp',
                   'mean_anomaly', 'periapsis', 'apoapsis', 'x', 'y', 'z',
                   'vx', 'vy', 'vz', 'classification', 'composition', 'density', 'size']
        return pd.DataFrame(rows, columns=columns)

    def group_fractions(self) -> pd.Series:
        """Fraction of draws produced by each group."""
        if not self._draws:
            return pd.Series(dtype=float)
        return self.to_dataframe()['group'].value_counts(normalize=True)

    # ========== PLOTTING ==========
    def plot_elements(self, x: str = 'a', y: str = 'e',
                      marker_size: Optional[int] = None) -> go.Figure:
        """
        Scatter plot of two orbital elements, one trace per group.

        Parameters:
            x: Element on the horizontal axis (default: 'a')
            y: Element on the vertical axis (default: 'e')
            marker_size: Marker size (default: config.DEFAULT_MARKER_SIZE)

        Returns:
            Plotly Figure object
        """
        for column in (x, y):
            if column not in _AXIS_LABELS:
                raise ValueError(f"Cannot plot '{column}'. Use: {list(_AXIS_LABELS)}")
        if marker_size is None:
            marker_size = config.DEFAULT_MARKER_SIZE

        df = self.to_dataframe()
        fig = go.Figure()
        for group, rows in df.groupby('group', sort=False):
            fig.add_trace(go.Scatter(
                x=rows[x],
                y=rows[y],
                mode='markers',
                marker=dict(size=marker_size),
                name=str(group),
                hovertemplate=f'{x}: %{{x:.4g}}<br>{y}: %{{y:.4g}}<extra>{group}</extra>'
            ))
        fig.update_layout(
            xaxis_title=_AXIS_LABELS[x],
            yaxis_title=_AXIS_LABELS[y],
            title=f'Drawn orbits ({len(df)} bodies)',
            showlegend=True
        )
        return fig

    def plot_positions(self, body_radius: Optional[float] = None,
                       body_color: Optional[str] = None,
                       body_opacity: Optional[float] = None,
                       marker_size: Optional[int] = None) -> go.Figure:
        """
        Create 3D plot of drawn positions relative to their central bodies.

        Parameters:
            body_radius: Radius of a sphere drawn at the origin; None for no sphere
            body_color: Color of that sphere (default: config.DEFAULT_BODY_COLOR)
            body_opacity: Opacity of that sphere (default: config.DEFAULT_BODY_OPACITY)
            marker_size: Marker size (default: config.DEFAULT_MARKER_SIZE)

        Returns:
            Plotly Figure object
        """
        if marker_size is None:
            marker_size = config.DEFAULT_MARKER_SIZE
        fig = go.Figure()

        if body_radius is not None:
            self._add_sphere_to_plot(
                fig,
                radius=body_radius,
                color=body_color or config.DEFAULT_BODY_COLOR,
                opacity=config.DEFAULT_BODY_OPACITY if body_opacity is None else body_opacity,
                name="Central Body"
            )

        df = self.to_dataframe()
        for group, rows in df.groupby('group', sort=False):
            fig.add_trace(go.Scatter3d(
                x=rows['x'],
                y=rows['y'],
                z=rows['z'],
                mode='markers',
                marker=dict(size=marker_size),
                name=str(group),
                hovertemplate='x: %{x:.4g}<br>y: %{y:.4g}<br>z: %{z:.4g}<extra></extra>'
            ))

        fig.update_layout(
            scene=dict(
                xaxis_title='X [m]',
                yaxis_title='Y [m]',
                zaxis_title='Z [m]',
                aspectmode='data'
            ),
            title='Drawn positions',
            showlegend=True
        )
        return fig

    @staticmethod
    def _add_sphere_to_plot(fig, radius, color, opacity, name):
        """Helper to add a sphere centered at the origin."""
        u = np.linspace(0, 2 * np.pi, 30)
        v = np.linspace(0, np.pi, 20)

        x = radius * np.outer(np.cos(u), np.sin(v))
        y = radius * np.outer(np.sin(u), np.sin(v))
        z = radius * np.outer(np.ones(np.size(u)), np.cos(v))

        fig.add_trace(go.Surface(
            x=x, y=y, z=z,
            colorscale=[[0, color], [1, color]],
            showscale=False,
            opacity=opacity,
            name=name,
            hoverinfo='name'
        ))
