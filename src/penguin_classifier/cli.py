"""Command-line interface for the penguin species classification workflow."""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    import pandas as pd

    from penguin_classifier.config.settings import PipelineConfig
    from penguin_classifier.modeling.data import TrainingData

app = typer.Typer(
    name="penguins",
    help="Penguin species classification: explore, compare, tune, train and predict.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]


def _section(title: str) -> None:
    rule = "=" * 60
    console.print(f"\n[bold blue]{rule}\n{title}\n{rule}[/bold blue]")


def _load_config(config: Path) -> "PipelineConfig":
    """Load configuration, exiting with code 1 on invalid files."""
    from penguin_classifier.config.loader import load_config

    console.print(f"[blue]Loading configuration from {config}[/blue]")
    try:
        return load_config(config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e


def _load_data(pipeline_config: "PipelineConfig") -> "pd.DataFrame":
    """Load and validate the raw penguin data, exiting with code 1 on failure."""
    import pandera.errors

    from penguin_classifier.modeling.data import load_penguins

    source = pipeline_config.data.path or "palmerpenguins package"
    console.print(f"[dim]Data: {source}[/dim]")
    try:
        return load_penguins(pipeline_config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except (pandera.errors.SchemaError, pandera.errors.SchemaErrors) as e:
        console.print(f"[red]Data validation failed: {e}[/red]")
        raise typer.Exit(code=1) from e


def _print_split_summary(training_data: "TrainingData") -> None:
    table = Table(title="Data Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total samples", str(training_data.n_samples))
    table.add_row("Rows dropped (missing)", str(training_data.n_dropped))
    table.add_row("Training samples", str(len(training_data.X_train)))
    table.add_row("Test samples", str(len(training_data.X_test)))
    table.add_row("Features", ", ".join(training_data.feature_names))
    table.add_row(
        "Classes",
        ", ".join(f"{k} ({v})" for k, v in training_data.class_counts.items()),
    )
    console.print(table)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Render log events as JSON lines."),
    ] = False,
) -> None:
    """Penguin species classification workflow."""
    from penguin_classifier.utils.logging import configure_logging

    configure_logging(level="DEBUG" if verbose else "INFO", json_output=json_logs)


@app.command()
def explore(config: ConfigOption) -> None:
    """Load the data and print an exploratory summary."""
    from penguin_classifier.exploration import explore as run_explore
    from penguin_classifier.exploration import print_exploration

    pipeline_config = _load_config(config)
    df = _load_data(pipeline_config)

    summary = run_explore(df, pipeline_config.features.target)
    console.print()
    print_exploration(summary, console)


@app.command()
def validate(
    config: ConfigOption,
    data: Annotated[
        Path | None,
        typer.Option(
            "--data",
            "-d",
            help="File to validate (default: configured data).",
        ),
    ] = None,
    schema: Annotated[
        str,
        typer.Option(
            "--schema",
            "-s",
            help="Schema name: 'penguins' or 'new_observations'.",
        ),
    ] = "penguins",
) -> None:
    """Validate a data file against a schema."""
    import pandera.errors

    from penguin_classifier.modeling.data import normalize_frame, read_table
    from penguin_classifier.schemas import DataRole, SchemaRegistry

    pipeline_config = _load_config(config)

    input_schemas = [
        *SchemaRegistry.list_by_role(DataRole.SOURCE),
        *SchemaRegistry.list_by_role(DataRole.INPUT),
    ]
    if schema not in input_schemas:
        console.print(
            f"[red]Error: Invalid schema '{schema}'. "
            f"Use one of: {', '.join(input_schemas)}.[/red]"
        )
        raise typer.Exit(code=1)

    console.print("[blue]Running schema validation...[/blue]")
    try:
        if data is not None:
            df = normalize_frame(read_table(data))
            source = str(data)
        elif schema == "new_observations":
            path = pipeline_config.data.resolve("new_observations")
            df = normalize_frame(read_table(path))
            source = str(path)
        else:
            from penguin_classifier.modeling.data import load_penguins

            df = load_penguins(pipeline_config, validate=False)
            source = str(pipeline_config.data.path or "palmerpenguins package")

        SchemaRegistry.validate(df, schema, lazy=True)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except pandera.errors.SchemaErrors as e:
        console.print(f"[red]✗ {schema}: {len(e.failure_cases)} failure(s)[/red]")
        failures = Table(title="Failure Cases")
        failures.add_column("Column", style="cyan")
        failures.add_column("Check", style="yellow")
        failures.add_column("Value", style="red")
        for _, row in e.failure_cases.head(20).iterrows():
            failures.add_row(str(row["column"]), str(row["check"]), str(row["failure_case"]))
        console.print(failures)
        raise typer.Exit(code=1) from e

    console.print(f"[green]✓ {source}: {len(df)} rows valid against '{schema}'[/green]")


@app.command()
def compare(config: ConfigOption) -> None:
    """Compare the enabled models on resamples of the training set."""
    from penguin_classifier.evaluation.report import generate_comparison_table
    from penguin_classifier.modeling.data import prepare_training_data
    from penguin_classifier.modeling.training import ModelTrainer

    pipeline_config = _load_config(config)
    df = _load_data(pipeline_config)

    try:
        training_data = prepare_training_data(pipeline_config, df)
        _print_split_summary(training_data)

        console.print(
            f"\n[blue]Comparing models: {', '.join(pipeline_config.models.enabled)}[/blue]"
        )
        trainer = ModelTrainer(pipeline_config)
        comparison = trainer.compare(training_data.X_train, training_data.y_train)
    except ValueError as e:
        console.print(f"[red]Comparison failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    if not comparison.results:
        console.print("[red]Error: no known models enabled[/red]")
        raise typer.Exit(code=1)

    generate_comparison_table(comparison, console)
    console.print(
        f"\n[green]Best model by {comparison.metric}: {comparison.best_model}[/green]"
    )


@app.command()
def tune(
    config: ConfigOption,
    model: Annotated[
        str | None,
        typer.Option(
            "--model",
            "-m",
            help="Model to tune (default: tuning.model from config).",
        ),
    ] = None,
) -> None:
    """Grid-search the hyperparameters of one model."""
    from penguin_classifier.evaluation.report import generate_tuning_table
    from penguin_classifier.modeling.data import prepare_training_data
    from penguin_classifier.modeling.tuning import GridTuner

    pipeline_config = _load_config(config)
    df = _load_data(pipeline_config)
    model_name = model or pipeline_config.tuning.model

    try:
        training_data = prepare_training_data(pipeline_config, df)
        _print_split_summary(training_data)

        console.print(f"\n[blue]Tuning {model_name}[/blue]")
        result = GridTuner(pipeline_config).tune(
            model_name, training_data.X_train, training_data.y_train
        )
    except KeyError as e:
        console.print(f"[red]Error: {e.args[0]}[/red]")
        raise typer.Exit(code=1) from e
    except ValueError as e:
        console.print(f"[red]Tuning failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    generate_tuning_table(result, console)
    params = ", ".join(f"{k}={v}" for k, v in result.best_params.items())
    console.print(f"\n[green]Best parameters: {params}[/green]")


@app.command()
def train(
    config: ConfigOption,
    model: Annotated[
        str | None,
        typer.Option(
            "--model",
            "-m",
            help="Model to tune and fit (default: tuning.model from config).",
        ),
    ] = None,
    no_tune: Annotated[
        bool,
        typer.Option(
            "--no-tune",
            help="Skip hyperparameter tuning and fit with default parameters.",
        ),
    ] = False,
    no_mlflow: Annotated[
        bool,
        typer.Option(
            "--no-mlflow",
            help="Disable MLflow logging.",
        ),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help=(
                "Directory for the model and test predictions "
                "(default: <output.root>/<project>/models and .../predictions)."
            ),
        ),
    ] = None,
    report: Annotated[
        Path | None,
        typer.Option(
            "--report",
            "-r",
            help="Path for the HTML report (default: <output.root>/<project>/reports).",
        ),
    ] = None,
) -> None:
    """
    Run the full walkthrough.

    Explores the data, splits it, compares the enabled models on
    resamples, tunes the chosen model, fits it on the full training set,
    evaluates it on the test set and saves the model, predictions and
    HTML report.
    """
    from datetime import datetime

    from penguin_classifier.evaluation.report import (
        ReportData,
        extract_feature_importance,
        generate_comparison_table,
        generate_html_report,
        generate_metrics_table,
        generate_tuning_table,
        print_confusion_matrix,
        print_feature_importance_table,
        save_prediction_tables,
    )
    from penguin_classifier.exploration import explore as run_explore
    from penguin_classifier.exploration import print_exploration
    from penguin_classifier.modeling.data import prepare_training_data
    from penguin_classifier.modeling.inference import save_model
    from penguin_classifier.modeling.models import MODEL_REGISTRY
    from penguin_classifier.modeling.training import ModelTrainer
    from penguin_classifier.modeling.tuning import GridTuner

    pipeline_config = _load_config(config)
    model_name = model or pipeline_config.tuning.model
    if model_name not in MODEL_REGISTRY:
        console.print(
            f"[red]Error: Unknown model '{model_name}'. "
            f"Available: {', '.join(MODEL_REGISTRY)}[/red]"
        )
        raise typer.Exit(code=1)

    df = _load_data(pipeline_config)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    _section("Exploratory analysis")
    summary = run_explore(df, pipeline_config.features.target)
    print_exploration(summary, console)

    trainer = ModelTrainer(pipeline_config)
    tuning = None
    try:
        training_data = prepare_training_data(pipeline_config, df)
        _print_split_summary(training_data)

        _section("Resampled comparison")
        comparison = trainer.compare(training_data.X_train, training_data.y_train)
        if comparison.results:
            generate_comparison_table(comparison, console)

        workflow = trainer.workflow(model_name)
        if not no_tune:
            _section(f"Tuning {model_name}")
            tuning = GridTuner(pipeline_config).tune(
                model_name, training_data.X_train, training_data.y_train
            )
            generate_tuning_table(tuning, console)
            workflow = tuning.workflow

        _section(f"Final fit: {model_name}")
        trained = trainer.last_fit(
            workflow,
            training_data.X_train,
            training_data.y_train,
            training_data.X_test,
            training_data.y_test,
            name=model_name,
            best_params=tuning.best_params if tuning is not None else None,
        )
    except (KeyError, ValueError) as e:
        console.print(f"[red]Training failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    generate_metrics_table(trained, console)
    print_confusion_matrix(trained.confusion, console)
    importance = extract_feature_importance(trained.workflow, trained.feature_names)
    if importance is not None:
        print_feature_importance_table(importance, model_name, console)

    # Persist model and predictions
    output_dir = output or pipeline_config.models_dir
    safe_name = model_name.lower().replace(" ", "_")
    model_path = save_model(
        trained,
        output_dir / f"{pipeline_config.project}_{safe_name}_{timestamp}.joblib",
        extra_metadata={"project": pipeline_config.project},
    )
    console.print(f"[green]Saved model: {model_path}[/green]")

    artifacts = [model_path]
    if not trained.predictions.empty:
        predictions_path = save_prediction_tables(
            trained,
            output or pipeline_config.predictions_dir,
            experiment_name=pipeline_config.project,
            timestamp=timestamp,
        )
        artifacts.append(predictions_path)
        console.print(f"[green]Saved test predictions: {predictions_path}[/green]")

    report_path = report or pipeline_config.reports_dir / f"training_report_{timestamp}.html"
    report_data = ReportData(
        project=pipeline_config.project,
        data=df,
        exploration=summary,
        trained=trained,
        comparison=comparison,
        tuning=tuning,
        n_samples=training_data.n_samples,
        n_train=len(training_data.X_train),
        n_test=len(training_data.X_test),
        n_dropped=training_data.n_dropped,
        feature_names=training_data.feature_names,
    )
    generate_html_report(report_data, report_path)
    artifacts.append(report_path)
    console.print(f"[green]Report saved to: {report_path}[/green]")

    # MLflow logging
    if pipeline_config.mlflow.enabled and not no_mlflow:
        from penguin_classifier.evaluation.experiment import TrainingExperiment

        console.print("\n[blue]Logging to MLflow...[/blue]")
        try:
            run_id = TrainingExperiment(pipeline_config).run(
                trained,
                comparison=comparison,
                tuning=tuning,
                artifacts=artifacts,
            )
            console.print(f"[green]Logged to MLflow run: {run_id}[/green]")
        except Exception as e:
            console.print(f"[yellow]MLflow logging failed: {e}[/yellow]")

    console.print(f"\n[green]Training complete. Model: {model_name}[/green]")


@app.command()
def predict(
    config: ConfigOption,
    model_uri: Annotated[
        str,
        typer.Option(
            "--model",
            "-m",
            help="MLflow model URI (runs:/..., models:/name/version) or path to .joblib file.",
        ),
    ],
    data: Annotated[
        Path | None,
        typer.Option(
            "--data",
            "-d",
            help="CSV/Parquet file of new observations (default: data.new_observations).",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Optional CSV path for the predictions.",
        ),
    ] = None,
) -> None:
    """Score new observations with a saved model."""
    import pandera.errors

    from penguin_classifier.modeling.inference import (
        load_model,
        load_new_observations,
        predict_species,
        save_predictions,
    )

    pipeline_config = _load_config(config)

    console.print(f"[blue]Loading model: {model_uri}[/blue]")
    try:
        loaded_model = load_model(model_uri)
    except FileNotFoundError as e:
        console.print(f"[red]Model not found: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Error loading model: {e}[/red]")
        raise typer.Exit(code=1) from e

    if loaded_model.feature_names:
        console.print(
            f"[dim]Model features: {', '.join(loaded_model.feature_names)}[/dim]"
        )

    try:
        data_path = data or pipeline_config.data.resolve("new_observations")
        new_data = load_new_observations(data_path)
        result = predict_species(
            loaded_model.model, new_data, loaded_model.feature_names
        )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except (pandera.errors.SchemaError, pandera.errors.SchemaErrors) as e:
        console.print(f"[red]New observations failed validation: {e}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title=f"Predictions ({loaded_model.name})")
    table.add_column("#", style="dim")
    table.add_column("Predicted species", style="cyan")
    prob_columns = [c for c in result.predictions.columns if c.startswith("prob_")]
    for col in prob_columns:
        table.add_column(col.removeprefix("prob_"), style="green", justify="right")

    for idx, row in result.predictions.iterrows():
        table.add_row(
            str(idx),
            str(row["predicted_species"]),
            *[f"{row[c]:.3f}" for c in prob_columns],
        )
    console.print(table)

    if result.n_imputed:
        console.print(
            f"[dim]{result.n_imputed} missing value(s) imputed by the recipe[/dim]"
        )

    if output is not None:
        save_predictions(result, new_data, output)
        console.print(f"\n[green]Saved predictions to: {output}[/green]")


@app.command()
def version() -> None:
    """Show version information."""
    from penguin_classifier import __version__

    console.print(f"penguin-classifier version {__version__}")


if __name__ == "__main__":
    app()
