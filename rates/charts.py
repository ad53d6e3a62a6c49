from __future__ import annotations

from typing import Any, Dict, List, Sequence

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def rate_bar_chart(bars: Sequence[Dict[str, Any]], *, hourly: bool, averages: bool) -> Dict[str, Any]:
    """Grouped bars per state; one series per selected rate line (or the state average)."""
    df = pd.DataFrame(list(bars), columns=["state", "series", "rate"])
    title = "Hourly Equivalent Rate ($)" if hourly else "Rate Per Base Unit ($)"
    if averages:
        title = f"Average {title}"
    state_order: List[str] = list(dict.fromkeys(df["state"].tolist()))
    base = alt.Chart(df).encode(
        x=alt.X("state:N", title="State", sort=state_order),
        y=alt.Y("rate:Q", title=title, axis=alt.Axis(format="$,.2f")),
        tooltip=[
            alt.Tooltip("state:N", title="State"),
            alt.Tooltip("series:N", title="Rate Line"),
            alt.Tooltip("rate:Q", title="Rate", format="$,.2f"),
        ],
    )
    if averages:
        bars_layer = base.mark_bar(color="#36A2EB", opacity=0.7)
    else:
        bars_layer = base.mark_bar(opacity=0.7).encode(
            color=alt.Color("series:N", title="Rate Line"),
            xOffset="series:N",
        )
    labels = base.mark_text(dy=-6, fontSize=11, fontWeight="bold", color="#374151").encode(
        text=alt.Text("rate:Q", format="$,.2f"),
    )
    if not averages:
        labels = labels.encode(xOffset="series:N")
    return to_vega_spec(alt.layer(bars_layer, labels))


def rate_history_chart(points: Sequence[Dict[str, Any]], *, hourly: bool) -> Dict[str, Any]:
    """Step line of a rate line's value across effective dates."""
    df = pd.DataFrame(list(points), columns=["date", "value", "display_value", "duration_unit"])
    df = df.dropna(subset=["value"])
    title = "Hourly Equivalent Rate ($)" if hourly else "Rate Per Base Unit ($)"
    color = "#ef4444" if hourly else "#3b82f6"
    hover = alt.selection_point(fields=["date"], on="mouseover", nearest=True, empty=False)
    base = alt.Chart(df).encode(
        x=alt.X("date:T", title="Effective Date", axis=alt.Axis(format="%m/%d/%Y", grid=False)),
        y=alt.Y("value:Q", title=title, axis=alt.Axis(format="$,.2f", gridDash=[4, 4], domain=False, ticks=False)),
    )
    line = base.mark_line(interpolate="step-after", color=color)
    markers = (
        base.mark_point(filled=True, size=60, color=color)
        .encode(
            opacity=alt.condition(hover, alt.value(1), alt.value(0.4)),
            tooltip=[
                alt.Tooltip("date:T", title="Date", format="%m/%d/%Y"),
                alt.Tooltip("display_value:N", title="Rate"),
                alt.Tooltip("duration_unit:N", title="Duration Unit"),
            ],
        )
        .add_params(hover)
    )
    return to_vega_spec(alt.layer(line, markers))
