"""
Charts service for portfolio breakdown charts.
"""

import pandas as pd
import plotly.graph_objects as go


class ChartsService:
    """Service for generating breakdown charts."""

    @staticmethod
    def breakdown_pie(frame: pd.DataFrame, title: str = "Portfolio Breakdown") -> go.Figure | None:
        """
        Build a donut chart from a breakdown DataFrame.

        Args:
            frame: DataFrame with name, value, percent and color columns
            title: Chart title

        Returns:
            Plotly figure, or None when there is nothing to plot
        """
        if frame is None or frame.empty:
            return None

        fig = go.Figure(
            go.Pie(
                labels=frame["name"],
                values=frame["value"],
                marker={"colors": list(frame["color"])},
                hole=0.4,
                textinfo="label+percent",
                hovertemplate="%{label}: %{value:,.0f} (%{percent})<extra></extra>",
                sort=False,
            )
        )
        fig.update_layout(title=title, showlegend=True, height=420, margin={"t": 60, "b": 20, "l": 20, "r": 20})
        return fig
