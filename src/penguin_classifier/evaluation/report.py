"""
Self-contained HTML report of a walkthrough.

The report walks the same path as the CLI: exploration plots, resampled
comparison, tuning candidates and the final fit on the held-out test set,
with every figure inlined as base64 PNG. The test-set predictions are
also written out as CSV.
"""

import contextlib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from rich.console import Console
from rich.table import Table
from sklearn.metrics import auc, roc_curve

from penguin_classifier.evaluation.metrics import per_class_report
from penguin_classifier.exploration.eda import (
    ExplorationSummary,
    plot_bill_dimensions,
    plot_flipper_vs_mass,
    plot_measurement_boxplots,
    plot_missingness,
)
from penguin_classifier.modeling.preprocessing import (
    get_feature_names_from_recipe,
    unwrap_workflow,
)
from penguin_classifier.schemas.registry import SchemaRegistry
from penguin_classifier.utils.logging import get_logger
from penguin_classifier.utils.plotting import fig_to_base64, species_color

if TYPE_CHECKING:
    from penguin_classifier.modeling.training import ComparisonResult, TrainedModel
    from penguin_classifier.modeling.tuning import TuningResult

log = get_logger(__name__)


def save_prediction_tables(
    trained: "TrainedModel",
    output_dir: Path,
    *,
    experiment_name: str | None = None,
    timestamp: str | None = None,
) -> Path:
    """
    Save the held-out test predictions of a final fit.

    Writes a CSV with ``actual``, ``predicted`` and one ``prob_<species>``
    column per class.

    The file is named
    ``[<experiment>_]<model>_test_predictions_<timestamp>.csv`` with names
    lower-cased and spaces replaced by underscores. ``timestamp`` defaults
    to the current time.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = timestamp or f"{datetime.now():%Y%m%d_%H%M%S}"

    parts = [experiment_name, trained.name] if experiment_name else [trained.name]
    prefix = "_".join(part.replace(" ", "_").lower() for part in parts)

    predictions = trained.predictions
    if not predictions.empty:
        predictions = SchemaRegistry.validate(predictions, "test_predictions")

    path = output_dir / f"{prefix}_test_predictions_{timestamp}.csv"
    predictions.to_csv(path, index=False)

    log.info("Saved test predictions", model=trained.name, path=str(path), rows=len(predictions))
    return path


@dataclass
class FeatureImportance:
    """Importance of each recipe output column for one fitted model."""

    feature_names: list[str]
    importances: np.ndarray
    importance_type: str  # 'gain' or 'coefficient_magnitude'

    def ranked(self) -> pd.DataFrame:
        """Columns ``feature``, ``importance`` and ``share`` (percent), largest first."""
        total = float(self.importances.sum())
        ranked = pd.DataFrame(
            {"feature": self.feature_names, "importance": self.importances}
        ).sort_values("importance", ascending=False, ignore_index=True)
        ranked["share"] = ranked["importance"] / total * 100 if total > 0 else 0.0
        return ranked


@dataclass
class ReportData:
    """Data for generating a training report."""

    project: str
    data: pd.DataFrame
    exploration: ExplorationSummary
    trained: "TrainedModel"
    comparison: "ComparisonResult | None" = None
    tuning: "TuningResult | None" = None

    # Metadata
    n_samples: int = 0
    n_train: int = 0
    n_test: int = 0
    n_dropped: int = 0
    feature_names: list[str] | None = None


def extract_feature_importance(
    workflow: Any,
    feature_names: list[str],
) -> FeatureImportance | None:
    """
    Read importances off the fitted model inside a workflow.

    Boosted trees report gain through ``feature_importances_``. For the
    multinomial regression the absolute coefficients are averaged over the
    species; predictors are standardized so the magnitudes compare. Models
    offering neither give None.
    """
    preprocessor, inner_model = unwrap_workflow(workflow)

    if hasattr(inner_model, "feature_importances_"):
        values = np.asarray(inner_model.feature_importances_, dtype=float)
        kind = "gain"
    elif hasattr(inner_model, "coef_"):
        values = np.abs(np.atleast_2d(inner_model.coef_)).mean(axis=0)
        kind = "coefficient_magnitude"
    else:
        return None

    # One output column per dummy level after the recipe
    names = list(feature_names)
    if preprocessor is not None:
        with contextlib.suppress(AttributeError, ValueError):
            names = [str(n) for n in get_feature_names_from_recipe(preprocessor)]

    if len(names) != len(values):
        log.warning(
            "Importances do not line up with feature names",
            n_values=len(values),
            n_names=len(names),
        )
        names = [f"feature_{i}" for i in range(len(values))]

    return FeatureImportance(feature_names=names, importances=values, importance_type=kind)


def _format_estimate(mean: float, std_err: float) -> str:
    if np.isnan(std_err):
        return f"{mean:.4f}"
    return f"{mean:.4f} ± {std_err:.4f}"


def generate_comparison_table(
    comparison: "ComparisonResult",
    console: Console | None = None,
) -> tuple[pd.DataFrame, str]:
    """
    Model x metric table of resampled means, best model first.

    Printed to ``console`` when given; returned as a frame of means plus
    an HTML rendering with ``mean ± std_err`` cells.
    """
    table_long = comparison.table
    df = table_long.pivot(index="model", columns="metric", values="mean")
    std_err = table_long.pivot(index="model", columns="metric", values="std_err")

    ranked = comparison.ranking()["model"].tolist()
    df = df.loc[ranked]
    std_err = std_err.loc[ranked]

    display = pd.DataFrame(
        {
            metric: [
                _format_estimate(df.loc[model, metric], std_err.loc[model, metric])
                for model in df.index
            ]
            for metric in df.columns
        },
        index=df.index,
    )

    if console is not None:
        n = int(table_long["n"].max()) if not table_long.empty else 0
        table = Table(title=f"Resampled Comparison ({n} resamples, mean ± SE)")
        table.add_column("Model", style="cyan")
        for metric in display.columns:
            style = "green" if metric == comparison.metric else None
            table.add_column(metric, style=style, justify="right")
        for model, row in display.iterrows():
            table.add_row(str(model), *row.tolist())
        console.print(table)

    html = display.reset_index().to_html(index=False, classes="metrics-table")
    sizes = comparison.resamples
    if not sizes.empty:
        html += (
            f"<p>{len(sizes)} resamples: {sizes['n_analysis'].mean():.0f} analysis rows "
            f"({sizes['n_unique_analysis'].mean():.0f} unique on average), "
            f"{sizes['n_assessment'].mean():.0f} assessment rows on average.</p>"
        )
    return df.reset_index(), html


def generate_tuning_table(
    tuning: "TuningResult",
    console: Console | None = None,
    n: int = 5,
) -> tuple[pd.DataFrame, str]:
    """Top ``n`` grid candidates as a frame and as HTML."""
    df = tuning.show_best(n=n)

    if console is not None:
        table = Table(title=f"{tuning.model_name}: Top {n} Candidates by {tuning.metric}")
        for param in tuning.param_names:
            table.add_column(param, style="cyan")
        table.add_column("mean", style="green", justify="right")
        table.add_column("std_err", style="yellow", justify="right")
        table.add_column(".config", style="dim")
        for _, row in df.iterrows():
            table.add_row(
                *[str(row[p]) for p in tuning.param_names],
                f"{row['mean']:.4f}",
                f"{row['std_err']:.4f}",
                str(row[".config"]),
            )
        console.print(table)

    html = df.to_html(
        index=False,
        float_format=lambda x: f"{x:.4f}",
        classes="metrics-table",
    )
    return df, html


def generate_metrics_table(
    trained: "TrainedModel",
    console: Console | None = None,
) -> tuple[pd.DataFrame, str]:
    """Test-set metrics of the final fit as a frame and as HTML."""
    if trained.test_metrics is None:
        return pd.DataFrame(columns=["metric", "value"]), "<p>No test set.</p>"

    metrics = trained.test_metrics.to_dict()
    df = pd.DataFrame({"metric": list(metrics), "value": list(metrics.values())})

    if console is not None:
        table = Table(title=f"{trained.name}: Test Set Metrics")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green", justify="right")
        for name, value in metrics.items():
            formatted = str(value) if name == "n_samples" else f"{value:.4f}"
            table.add_row(name, formatted)
        console.print(table)

    html = df.to_html(
        index=False,
        float_format=lambda x: f"{x:.4f}",
        classes="metrics-table",
    )
    return df, html


def print_confusion_matrix(
    confusion: pd.DataFrame,
    console: Console | None = None,
) -> None:
    """Print confusion matrix (truth rows, prediction columns) to console."""
    if console is None or confusion.empty:
        return

    table = Table(title="Confusion Matrix (rows: truth, columns: prediction)")
    table.add_column("truth", style="cyan")
    for col in confusion.columns:
        table.add_column(str(col), justify="right")
    for truth, row in confusion.iterrows():
        cells = [
            f"[green]{v}[/green]" if col == truth else str(v)
            for col, v in row.items()
        ]
        table.add_row(str(truth), *cells)
    console.print(table)


def generate_confusion_heatmap(confusion: pd.DataFrame, model_name: str) -> str:
    """
    Generate heat map of the confusion matrix.

    Returns base64 encoded PNG image.
    """
    fig, ax = plt.subplots(figsize=(6, 5))
    values = confusion.to_numpy()
    image = ax.imshow(values, cmap="Blues")

    threshold = values.max() / 2 if values.size else 0
    for i in range(values.shape[0]):
        for j in range(values.shape[1]):
            ax.text(
                j,
                i,
                str(values[i, j]),
                ha="center",
                va="center",
                color="white" if values[i, j] > threshold else "black",
                fontsize=12,
            )

    ax.set_xticks(range(len(confusion.columns)))
    ax.set_xticklabels(confusion.columns)
    ax.set_yticks(range(len(confusion.index)))
    ax.set_yticklabels(confusion.index)
    ax.set_xlabel("Prediction", fontsize=11)
    ax.set_ylabel("Truth", fontsize=11)
    ax.set_title(f"{model_name}: Confusion Matrix", fontsize=12)
    fig.colorbar(image, ax=ax)

    return fig_to_base64(fig)


def generate_roc_curves(trained: "TrainedModel") -> str | None:
    """
    Generate one-vs-rest ROC curves, one per class.

    Returns base64 encoded PNG image, or None without test predictions.
    """
    predictions = trained.predictions
    if predictions.empty or "actual" not in predictions.columns:
        return None

    fig, ax = plt.subplots(figsize=(8, 6))
    actual = predictions["actual"].astype(str).to_numpy()

    for cls in trained.classes:
        is_class = actual == cls
        if is_class.all() or not is_class.any():
            continue
        fpr, tpr, _ = roc_curve(is_class, predictions[f"prob_{cls}"])
        ax.plot(
            fpr,
            tpr,
            color=species_color(cls),
            linewidth=2,
            label=f"{cls} (AUC = {auc(fpr, tpr):.3f})",
        )

    ax.plot([0, 1], [0, 1], "k--", alpha=0.5, label="Chance")
    ax.set_xlabel("1 - Specificity", fontsize=11)
    ax.set_ylabel("Sensitivity", fontsize=11)
    ax.set_title(f"{trained.name}: ROC Curves (one vs rest)", fontsize=12)
    ax.legend(loc="lower right")
    ax.grid(True, alpha=0.3)

    return fig_to_base64(fig)


def generate_feature_importance_plot(
    feature_importance: FeatureImportance,
    model_name: str,
    top_n: int = 15,
) -> str:
    """Horizontal bars of the top ``top_n`` features as percent of the total."""
    # barh draws bottom-up, so reverse to put the largest on top
    top = feature_importance.ranked().head(top_n).iloc[::-1]
    positions = np.arange(len(top))

    fig, ax = plt.subplots(figsize=(10, max(4, len(top) * 0.4)))
    ax.barh(positions, top["share"], color="steelblue")
    for y, share in zip(positions, top["share"]):
        ax.annotate(
            f"{share:.1f}%",
            xy=(share, y),
            xytext=(3, 0),
            textcoords="offset points",
            va="center",
            fontsize=9,
        )

    ax.set_yticks(positions, labels=top["feature"])
    ax.set_xlabel(f"Share of total importance (%, {feature_importance.importance_type})")
    ax.set_title(f"{model_name}: Feature Importance")
    ax.set_xlim(0, max(float(top["share"].max()) * 1.15, 1) if len(top) else 1)
    ax.grid(axis="x", alpha=0.3)

    fig.tight_layout()
    return fig_to_base64(fig)


def print_feature_importance_table(
    feature_importance: FeatureImportance,
    model_name: str,
    console: Console | None = None,
) -> None:
    """Print every feature ranked by importance."""
    if console is None:
        return

    table = Table(
        title=f"{model_name}: Feature Importance ({feature_importance.importance_type})"
    )
    table.add_column("#", style="dim", justify="right")
    table.add_column("Feature", style="cyan")
    table.add_column("Importance", justify="right")
    table.add_column("Share", style="green", justify="right")

    for rank, row in enumerate(feature_importance.ranked().itertuples(index=False), 1):
        table.add_row(str(rank), row.feature, f"{row.importance:.4f}", f"{row.share:.1f}%")

    console.print(table)


def _plot_block(title: str, plot_b64: str | None) -> str:
    if plot_b64 is None:
        return ""
    return f"""
            <div class="model-plot">
                <h3>{title}</h3>
                <img src="data:image/png;base64,{plot_b64}" alt="{title}">
            </div>
"""


_STYLE = """
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
            max-width: 1200px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
        }
        h1 { color: #333; border-bottom: 2px solid #4a90a4; padding-bottom: 10px; }
        h2 { color: #4a90a4; margin-top: 30px; }
        .section {
            background: white;
            border-radius: 8px;
            padding: 20px;
            margin-bottom: 20px;
            box-shadow: 0 2px 4px rgba(0,0,0,0.1);
        }
        .metadata {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 15px;
        }
        .metadata-item { background: #f8f9fa; padding: 10px 15px; border-radius: 4px; }
        .metadata-item strong { display: block; color: #666; font-size: 0.85em; margin-bottom: 5px; }
        table { width: 100%; border-collapse: collapse; margin: 15px 0; }
        th, td { padding: 10px 12px; text-align: left; border-bottom: 1px solid #ddd; }
        th { background-color: #4a90a4; color: white; font-weight: 600; }
        tr:hover { background-color: #f5f5f5; }
        .model-plots { display: flex; flex-direction: column; gap: 20px; }
        .model-plot { background: #f8f9fa; padding: 15px; border-radius: 8px; text-align: center; }
        .model-plot img { max-width: 100%; height: auto; }
        .model-plot h3 { margin-top: 0; color: #333; }
        .timestamp { color: #999; font-size: 0.9em; text-align: right; }
"""


def generate_html_report(
    report_data: ReportData,
    output_path: Path,
    console: Console | None = None,
) -> Path:
    """
    Generate complete HTML training report.

    Args:
        report_data: Report data containing all results.
        output_path: Path to save the HTML report.
        console: Optional console for printing tables.

    Returns:
        Path to the generated report.
    """
    log.info("Generating training report", output=str(output_path))

    summary = report_data.exploration
    trained = report_data.trained
    target = summary.target
    feature_names = report_data.feature_names or trained.feature_names

    # EDA
    eda_plots = {
        "Missing Values": plot_missingness(summary),
        "Bill Length vs Bill Depth": plot_bill_dimensions(report_data.data, target),
        "Flipper Length vs Body Mass": plot_flipper_vs_mass(report_data.data, target),
        "Measurements by Species": plot_measurement_boxplots(
            report_data.data, summary.numeric_columns, target
        ),
    }
    balance_html = summary.class_balance.to_html(classes="metrics-table")
    means_html = summary.species_means.to_html(
        float_format=lambda x: f"{x:.2f}", classes="metrics-table"
    )
    island_html = (
        summary.island_species.to_html(classes="metrics-table")
        if summary.island_species is not None
        else ""
    )

    # Comparison and tuning
    comparison_html = "<p>Comparison was not run.</p>"
    if report_data.comparison is not None and report_data.comparison.results:
        _comparison_df, comparison_html = generate_comparison_table(
            report_data.comparison, console
        )

    tuning_html = "<p>Tuning was not run.</p>"
    best_params_html = ""
    if report_data.tuning is not None:
        _tuning_df, tuning_html = generate_tuning_table(report_data.tuning, console)
        best_params_html = "".join(
            f"<li><strong>{k}</strong>: {v}</li>"
            for k, v in report_data.tuning.best_params.items()
        )
        best_params_html = f"<ul>{best_params_html}</ul>"

    # Final fit
    _metrics_df, metrics_html = generate_metrics_table(trained, console)
    print_confusion_matrix(trained.confusion, console)

    confusion_plot = None
    per_class_html = ""
    if not trained.confusion.empty:
        confusion_plot = generate_confusion_heatmap(trained.confusion, trained.name)
        per_class = per_class_report(
            trained.predictions["actual"], trained.predictions["predicted"], trained.classes
        )
        per_class_html = per_class.to_html(
            float_format=lambda x: f"{x:.4f}", classes="metrics-table"
        )
    roc_plot = generate_roc_curves(trained)

    feature_importance = extract_feature_importance(trained.workflow, trained.feature_names)
    importance_plot = None
    if feature_importance is not None:
        print_feature_importance_table(feature_importance, trained.name, console)
        importance_plot = generate_feature_importance_plot(feature_importance, trained.name)

    html_content = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Training Report - {report_data.project}</title>
    <style>{_STYLE}</style>
</head>
<body>
    <h1>Penguin Species Classification Report</h1>
    <p class="timestamp">Generated: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}</p>

    <div class="section">
        <h2>Dataset Overview</h2>
        <div class="metadata">
            <div class="metadata-item"><strong>Rows (raw)</strong>{summary.n_rows}</div>
            <div class="metadata-item"><strong>Rows dropped</strong>{report_data.n_dropped}</div>
            <div class="metadata-item"><strong>Total Samples</strong>{report_data.n_samples}</div>
            <div class="metadata-item"><strong>Training Samples</strong>{report_data.n_train}</div>
            <div class="metadata-item"><strong>Test Samples</strong>{report_data.n_test}</div>
            <div class="metadata-item"><strong>Missing Values (raw)</strong>{summary.n_missing}</div>
        </div>
        <p><strong>Features used:</strong> {", ".join(feature_names)}</p>
    </div>

    <div class="section">
        <h2>Exploratory Analysis</h2>
        <h3>Class Balance</h3>
        {balance_html}
        <h3>Mean Measurements by Species</h3>
        {means_html}
        {"<h3>Island x Species</h3>" + island_html if island_html else ""}
        <div class="model-plots">
"""
    for title, plot_b64 in eda_plots.items():
        html_content += _plot_block(title, plot_b64)

    html_content += f"""
        </div>
    </div>

    <div class="section">
        <h2>Resampled Model Comparison</h2>
        <p>Mean ± standard error over resamples of the training set.</p>
        {comparison_html}
    </div>

    <div class="section">
        <h2>Hyperparameter Tuning</h2>
        {tuning_html}
        {"<h3>Selected Parameters</h3>" + best_params_html if best_params_html else ""}
    </div>

    <div class="section">
        <h2>Final Fit: {trained.name}</h2>
        <p>Fitted on the full training set and evaluated once on the test set.</p>
        {metrics_html}
        {per_class_html}
        <div class="model-plots">
"""
    html_content += _plot_block("Confusion Matrix", confusion_plot)
    html_content += _plot_block("ROC Curves", roc_plot)
    html_content += _plot_block("Feature Importance", importance_plot)

    html_content += """
        </div>
    </div>

    <div class="section">
        <h2>Notes</h2>
        <ul>
            <li><strong>Accuracy</strong>: Share of correctly classified penguins (higher is better)</li>
            <li><strong>Kappa</strong>: Cohen's kappa, agreement beyond chance (higher is better)</li>
            <li><strong>ROC AUC</strong>: One-vs-rest macro average (higher is better)</li>
            <li><strong>Log loss</strong>: Multinomial log loss of the class probabilities (lower is better)</li>
            <li><strong>Feature Importance (gain)</strong>: Average gain of splits on the feature (tree ensembles)</li>
            <li><strong>Feature Importance (coefficient)</strong>: Mean absolute coefficient over classes (multinomial regression)</li>
        </ul>
    </div>
</body>
</html>
"""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html_content, encoding="utf-8")

    log.info("Report generated", path=str(output_path))
    return output_path
