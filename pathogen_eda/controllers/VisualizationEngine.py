"""
VisualizationEngine.py - STATIC CHARTS FOR THE HOUSEHOLD PATHOGEN REPORT

Publication-style matplotlib / seaborn figures built from the summary tables.

Generates:
  1. Top-N prevalence bar chart (horizontal)
  2. Burden histogram by sample type (stacked, bin width 1)
  3. Category heatmap (sample type x category, % labels)
  4. Detection heatmap (household x target, faceted by sample type)

Visualizers never modify the tables they are given. An empty table renders
an empty, labelled chart instead of raising.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.colors import LinearSegmentedColormap, ListedColormap
from matplotlib.patches import Patch
import seaborn as sns

from pathogen_eda.controllers.TargetCategorizer import CATEGORY_ORDER

LOGGER = logging.getLogger(__name__)

# ========================= PUBLICATION CONSTANTS =============================

PUBLICATION_COLORS = {
    "primary": "#0077BB",      # Strong blue
    "secondary": "#CC3311",    # Strong red
    "neutral": "#BBBBBB",      # Gray
    "grid": "#E0E0E0",         # Light gray
}

# Colorblind-friendly palettes
COLORBLIND_PALETTES = {
    "blue_sequential": ["#f7fbff", "#deebf7", "#c6dbef", "#9ecae1", "#6baed6", "#4292c6", "#2171b5", "#08519c", "#08306b"],
    "categorical": ["#0077BB", "#CC3311", "#009988", "#EE7733", "#33BBEE", "#EE3377", "#BBBBBB"],
}

# not detected -> grey, detected -> purple
DETECTION_PALETTE = ["#BDBDBD", "#6A3D9A"]

PUBLICATION_FONTS = {
    "primary": "Arial",
    "fallback": "DejaVu Sans",
}

FIGURE_SIZES = {
    "single_column": (3.5, 3),
    "1.5_column": (5.5, 4),
    "double_column": (7, 5),
    "full_page": (7, 9),
}


# ================================ UTILITIES ==================================

def _ensure_dir(path: str | Path) -> Path:
    """Create directory if it doesn't exist."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _get_colorblind_cmap(name: str = "blue_sequential") -> LinearSegmentedColormap:
    colors = COLORBLIND_PALETTES.get(name, COLORBLIND_PALETTES["blue_sequential"])
    return LinearSegmentedColormap.from_list(name, colors)


def _set_publication_style():
    """Set matplotlib to publication-ready style."""
    plt.rcParams.update({
        "font.family": "sans-serif",
        "font.sans-serif": [PUBLICATION_FONTS["primary"], PUBLICATION_FONTS["fallback"]],
        "font.size": 8,
        "axes.labelsize": 9,
        "axes.titlesize": 10,
        "axes.titleweight": "bold",
        "xtick.labelsize": 8,
        "ytick.labelsize": 8,
        "legend.fontsize": 7,
        "legend.title_fontsize": 8,
        "figure.titlesize": 11,
        "figure.titleweight": "bold",
        "axes.linewidth": 1.0,
        "axes.spines.top": False,
        "axes.spines.right": False,
        "pdf.fonttype": 42,
        "ps.fonttype": 42,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.05,
    })


def _empty_axes(ax: plt.Axes, title: str, message: str = "No data") -> None:
    ax.set_title(title, fontweight="bold", pad=10)
    ax.text(0.5, 0.5, message, ha="center", va="center", transform=ax.transAxes, color=PUBLICATION_COLORS["neutral"])
    ax.set_xticks([])
    ax.set_yticks([])


# ============================== BASE VISUALIZER ==============================

class BaseVisualizer(ABC):
    """Abstract base class for the report visualizers."""

    def __init__(
        self,
        output_dir: str | Path = "./outputs/figures",
        dpi: int = 300,
        formats: Sequence[str] = ("png",),
        verbose: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.dpi = dpi
        self.formats = list(formats)
        self.verbose = verbose

        _set_publication_style()

    @abstractmethod
    def plot(self, *args, **kwargs) -> plt.Figure:
        """Generate the visualization."""

    def save_figure(self, fig: plt.Figure, filename: str, dpi: Optional[int] = None) -> List[Path]:
        """Save figure once per configured format; filename is the stem."""
        if dpi is None:
            dpi = self.dpi
        out_dir = _ensure_dir(self.output_dir)
        stem = Path(filename).stem

        paths = []
        for fmt in self.formats:
            path = out_dir / f"{stem}.{fmt}"
            fig.savefig(path, format=fmt, dpi=dpi, bbox_inches="tight", facecolor="white", edgecolor="none")
            paths.append(path)

        if self.verbose:
            LOGGER.info(f"Saved: {stem} ({', '.join(f.upper() for f in self.formats)})")
        return paths


# ==================== 1. TOP-N PREVALENCE BAR CHART ==========================

class PrevalenceBarVisualizer(BaseVisualizer):
    """Horizontal bars of the most prevalent targets."""

    def plot(
        self,
        summary: pd.DataFrame,
        top_n: int = 20,
        figsize: Tuple[float, float] = FIGURE_SIZES["double_column"],
        filename: Optional[str] = None,
        **kwargs,
    ) -> plt.Figure:
        """
        Parameters
        ----------
        summary : pd.DataFrame
            PrevalenceSummary: [target_name, prevalence, sd, ...]
        top_n : int
            Number of targets to display (highest prevalence first)
        """
        fig, ax = plt.subplots(figsize=figsize, dpi=self.dpi)
        title = f"Top {top_n} Targets by Prevalence"

        data = summary.dropna(subset=["prevalence"]).head(top_n) if not summary.empty else summary
        if data.empty:
            _empty_axes(ax, title)
        else:
            # Largest at the top
            data = data.iloc[::-1]
            y_pos = np.arange(len(data))
            bars = ax.barh(
                y_pos,
                data["prevalence"],
                color=PUBLICATION_COLORS["primary"],
                edgecolor="white",
                linewidth=0.8,
            )
            for i, (bar, val) in enumerate(zip(bars, data["prevalence"])):
                ax.text(val + 0.01, i, f"{val:.1%}", va="center", ha="left", fontsize=7)

            ax.set_yticks(y_pos)
            ax.set_yticklabels(data["target_name"].astype(str).tolist(), fontsize=7)
            ax.set_xlim(0, 1.05)
            ax.set_xlabel("Prevalence", fontweight="bold")
            ax.set_title(title, fontweight="bold", pad=10)
            ax.grid(True, alpha=0.3, axis="x", linewidth=0.5)
            ax.set_axisbelow(True)

        plt.tight_layout()
        if filename:
            self.save_figure(fig, filename)
        return fig


# ==================== 2. BURDEN HISTOGRAM ====================================

class BurdenHistogramVisualizer(BaseVisualizer):
    """Distribution of detections per household, stacked by sample type."""

    def plot(
        self,
        burden: pd.DataFrame,
        figsize: Tuple[float, float] = FIGURE_SIZES["1.5_column"],
        filename: Optional[str] = None,
        **kwargs,
    ) -> plt.Figure:
        fig, ax = plt.subplots(figsize=figsize, dpi=self.dpi)
        title = "Pathogen Burden by Sample Type"

        if burden.empty:
            _empty_axes(ax, title)
        else:
            n_types = burden["sample_type"].nunique()
            sns.histplot(
                data=burden,
                x="num_detected",
                hue="sample_type",
                multiple="stack",
                binwidth=1,
                discrete=True,
                palette=COLORBLIND_PALETTES["categorical"][:n_types] if n_types <= 7 else None,
                edgecolor="white",
                linewidth=0.5,
                ax=ax,
            )
            ax.set_xlabel("Number of targets detected", fontweight="bold")
            ax.set_ylabel("Households", fontweight="bold")
            ax.set_title(title, fontweight="bold", pad=10)
            ax.grid(True, alpha=0.3, axis="y", linewidth=0.5)
            ax.set_axisbelow(True)

        plt.tight_layout()
        if filename:
            self.save_figure(fig, filename)
        return fig


# ==================== 3. CATEGORY HEATMAP ====================================

class CategoryHeatmapVisualizer(BaseVisualizer):
    """Prevalence by sample type (columns) and target category (rows)."""

    def plot(
        self,
        category_summary: pd.DataFrame,
        figsize: Tuple[float, float] = FIGURE_SIZES["1.5_column"],
        filename: Optional[str] = None,
        **kwargs,
    ) -> plt.Figure:
        fig, ax = plt.subplots(figsize=figsize, dpi=self.dpi)
        title = "Prevalence by Target Category"

        if category_summary.empty:
            _empty_axes(ax, title)
        else:
            matrix = (
                category_summary.pivot_table(
                    index="category",
                    columns="sample_type",
                    values="prevalence",
                    aggfunc="first",
                    observed=False,
                )
                .reindex(CATEGORY_ORDER[::-1])
                .dropna(how="all")
            )
            labels = matrix.map(lambda v: "" if pd.isna(v) else f"{v * 100:.1f}%")
            sns.heatmap(
                matrix,
                annot=labels.to_numpy(),
                fmt="",
                cmap=_get_colorblind_cmap("blue_sequential"),
                vmin=0,
                vmax=1,
                ax=ax,
                cbar_kws={"label": "Prevalence", "shrink": 0.8},
                linewidths=0.5,
                linecolor="white",
            )
            ax.set_xlabel("Sample type", fontweight="bold")
            ax.set_ylabel("Category", fontweight="bold")
            ax.set_title(title, fontweight="bold", pad=10)

        plt.tight_layout()
        if filename:
            self.save_figure(fig, filename)
        return fig


# ==================== 4. DETECTION HEATMAP ===================================

class DetectionHeatmapVisualizer(BaseVisualizer):
    """Binary household x target detection grid, one panel per sample type."""

    def plot(
        self,
        records: pd.DataFrame,
        figsize: Optional[Tuple[float, float]] = None,
        filename: Optional[str] = None,
        **kwargs,
    ) -> plt.Figure:
        """
        Parameters
        ----------
        records : pd.DataFrame
            DetectionRecord rows: [household_id, sample_type, target_name, detect]
        """
        title = "Detection by Household and Target"
        sample_types = [] if records.empty else sorted(records["sample_type"].dropna().astype(str).unique())

        n_panels = max(len(sample_types), 1)
        if figsize is None:
            figsize = (FIGURE_SIZES["full_page"][0], 2.5 * n_panels + 1)
        fig, axes = plt.subplots(n_panels, 1, figsize=figsize, dpi=self.dpi, squeeze=False)
        axes = axes[:, 0]

        if not sample_types:
            _empty_axes(axes[0], title)
        else:
            cmap = ListedColormap(DETECTION_PALETTE)
            targets = list(pd.unique(records["target_name"].dropna().astype(str)))
            for ax, st in zip(axes, sample_types):
                sub = records[records["sample_type"].astype(str) == st]
                grid = (
                    sub.assign(target_name=sub["target_name"].astype(str))
                    .pivot_table(index="household_id", columns="target_name", values="detect", aggfunc="max")
                    .reindex(columns=targets)
                )
                if grid.empty:
                    _empty_axes(ax, st)
                    continue
                sns.heatmap(
                    grid,
                    cmap=cmap,
                    vmin=0,
                    vmax=1,
                    cbar=False,
                    xticklabels=False,
                    yticklabels=len(grid) <= 60,
                    ax=ax,
                )
                ax.set_title(st, fontweight="bold", pad=6)
                ax.set_xlabel("Target")
                ax.set_ylabel("Household")

            fig.legend(
                handles=[
                    Patch(facecolor=DETECTION_PALETTE[0], label="Not detected"),
                    Patch(facecolor=DETECTION_PALETTE[1], label="Detected"),
                ],
                loc="upper right",
                frameon=False,
            )
            fig.suptitle(title, fontweight="bold")

        plt.tight_layout()
        if filename:
            self.save_figure(fig, filename)
        return fig
