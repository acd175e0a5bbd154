from pathlib import Path

import numpy as np
import pandas as pd
from matplotlib.figure import Figure

from lmequiv.config import (
    CHANGE_COL,
    FIGURE_DPI,
    GROUP_COL,
    ID_COL,
    SCORE_COL,
    TIME_COL,
    TIME_LEVELS,
)

GROUP_COLORS = ["tab:blue", "tab:orange"]


def save_figure(fig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=FIGURE_DPI, bbox_inches="tight")


def _group_levels(df: pd.DataFrame) -> list:
    col = df[GROUP_COL]
    if hasattr(col, "cat"):
        return [str(c) for c in col.cat.categories]
    return sorted(map(str, col.unique()))


def plot_prepost_lines(long: pd.DataFrame) -> Figure:
    """One line per subject from pre to post, coloured by group, with group means."""

    fig = Figure(figsize=(6, 5))
    ax = fig.add_subplot(1, 1, 1)
    x_of = {lvl: i for i, lvl in enumerate(TIME_LEVELS)}
    for color, level in zip(GROUP_COLORS, _group_levels(long)):
        sub = long.loc[long[GROUP_COL].astype(str) == level]
        for _, subj in sub.groupby(ID_COL):
            xs = subj[TIME_COL].astype(str).map(x_of)
            ax.plot(xs, subj[SCORE_COL], color=color, alpha=0.35, linewidth=1)
        means = sub.groupby(sub[TIME_COL].astype(str))[SCORE_COL].mean().reindex(TIME_LEVELS)
        ax.plot(range(len(TIME_LEVELS)), means.to_numpy(), color=color, linewidth=3, marker="o", label=f"{level} mean")
    ax.set_xticks(range(len(TIME_LEVELS)))
    ax.set_xticklabels(TIME_LEVELS)
    ax.set_xlim(-0.25, len(TIME_LEVELS) - 0.75)
    ax.set_ylabel("Score")
    ax.set_title("Pre/post scores by subject")
    ax.legend()
    return fig


def plot_change_scores(wide: pd.DataFrame) -> Figure:
    fig = Figure(figsize=(5, 5))
    ax = fig.add_subplot(1, 1, 1)
    levels = _group_levels(wide)
    for i, (color, level) in enumerate(zip(GROUP_COLORS, levels)):
        vals = wide.loc[wide[GROUP_COL].astype(str) == level, CHANGE_COL].to_numpy(dtype=float)
        # Deterministic horizontal spread so tied values stay visible.
        offsets = np.linspace(-0.08, 0.08, num=max(vals.size, 1))[: vals.size]
        ax.scatter(np.full(vals.size, i) + offsets, vals, color=color, alpha=0.8)
        ax.hlines(vals.mean(), i - 0.2, i + 0.2, color=color, linewidth=2)
    ax.axhline(0.0, color="grey", linewidth=0.8, linestyle="--")
    ax.set_xticks(range(len(levels)))
    ax.set_xticklabels(levels)
    ax.set_ylabel("Change (post - pre)")
    ax.set_title("Change scores by group")
    return fig


def plot_equivalences(frame: pd.DataFrame) -> Figure:
    """Dot plot of each identity's two sides, one row per comparison."""

    fig = Figure(figsize=(8, max(3.0, 0.4 * len(frame) + 1.0)))
    ax = fig.add_subplot(1, 1, 1)
    y = np.arange(len(frame))
    ax.scatter(frame["left"], y, marker="o", label="left", zorder=3)
    ax.scatter(frame["right"], y, marker="x", label="right", zorder=3)
    for yi, (_, row) in zip(y, frame.iterrows()):
        style = "-" if row["exact"] else ":"
        ax.plot([row["left"], row["right"]], [yi, yi], color="grey", linestyle=style, linewidth=1)
    ax.set_yticks(y)
    ax.set_yticklabels(frame["name"], fontsize=7)
    ax.set_xscale("symlog")
    ax.set_xlabel("Statistic value (symlog)")
    ax.set_title("Identities: both sides of each comparison")
    ax.legend(loc="lower right")
    return fig
