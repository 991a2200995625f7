import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

SMOKER_COLORS = {"yes": "#EF553B", "no": "#636EFA"}


def age_charges_figure(df: pd.DataFrame) -> go.Figure:
    """
    Scatter of age against charges, coloured by smoker status, with a least
    squares trend line for each smoker group.
    """
    fig = px.scatter(
        df,
        x="age",
        y="charges",
        color="smoker",
        color_discrete_map=SMOKER_COLORS,
        opacity=0.6,
        hover_data=["bmi", "children", "region"],
    )

    for smoker, group in df.groupby("smoker"):
        # A line needs at least two distinct ages
        if group["age"].nunique() < 2:
            continue
        slope, intercept = np.polyfit(group["age"], group["charges"], 1)
        ages = np.array([group["age"].min(), group["age"].max()])
        fig.add_trace(go.Scatter(
            x=ages,
            y=intercept + slope * ages,
            mode="lines",
            name=f"trend (smoker={smoker})",
            line=dict(color=SMOKER_COLORS.get(smoker), width=3),
        ))

    fig.update_layout(
        title="How Age Affects Insurance Charges",
        xaxis_title="Age",
        yaxis_title="Charges ($)",
        template="plotly_white",
    )
    return fig


def smoker_boxplot_figure(df: pd.DataFrame) -> go.Figure:
    """Box plot of charges for smokers and non-smokers."""
    fig = px.box(
        df,
        x="smoker",
        y="charges",
        color="smoker",
        color_discrete_map=SMOKER_COLORS,
    )
    fig.update_layout(
        title="Impact of Smoking on Insurance Charges",
        xaxis_title="Smoker",
        yaxis_title="Charges ($)",
        template="plotly_white",
        showlegend=False,
    )
    return fig
