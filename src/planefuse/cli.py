"""CLI entry point for the planefuse pipeline.

Usage:
    planefuse run                              # Run full pipeline
    planefuse run-step s01_plane_fusion -i '{"detections_file": "d.json"}'
    planefuse info                             # Show pipeline info
    planefuse fuse detections.json -o out/     # Fuse one detections file directly
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from planefuse.core.logging import setup_logging

app = typer.Typer(name="planefuse", help="Multi-view plane fusion pipeline")
console = Console()

DEFAULT_CONFIG = Path("configs/pipeline.yaml")
DEFAULT_STEP_CONFIG = Path("configs/steps/s01_plane_fusion.yaml")


@app.command()
def run(
    config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Run the full pipeline."""
    setup_logging(log_level)
    from planefuse.core.pipeline_runner import run_pipeline

    run_pipeline(config)


@app.command()
def run_step(
    step_name: str = typer.Argument(..., help="Step name (e.g. plane_fusion)"),
    config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path"),
    input_json: str = typer.Option(None, "--input", "-i", help="Input as JSON string"),
) -> None:
    """Run a single pipeline step."""
    import json

    setup_logging()
    from planefuse.core.pipeline_runner import import_step_class, load_pipeline_config, load_step_config

    pipeline_cfg = load_pipeline_config(config)
    entry = next((s for s in pipeline_cfg.steps if s.name == step_name), None)
    if entry is None:
        console.print(f"[red]Step '{step_name}' not found in pipeline config[/red]")
        raise typer.Exit(1)

    step_cls = import_step_class(entry.module)
    step_config = load_step_config(Path(entry.config_file), step_cls.config_type)
    step_instance = step_cls(config=step_config, data_root=pipeline_cfg.data_root)

    input_data = json.loads(input_json) if input_json else {}
    required = step_cls.input_type.model_json_schema().get("required", [])
    missing = [name for name in required if name not in input_data]
    if missing:
        console.print(f"[yellow]Step '{step_name}' requires input fields: {missing}[/yellow]")
        console.print("[yellow]Use --input/-i with JSON string, e.g.:[/yellow]")
        console.print(f'  planefuse run-step {step_name} -i \'{{"field": "value"}}\'')
        raise typer.Exit(1)

    console.print(f"[green]Running step: {step_name}[/green]")
    step_input = step_cls.input_type(**input_data)
    output = step_instance.execute(step_input)
    console.print(f"[green]Done. Output:[/green] {output.model_dump_json(indent=2)}")


@app.command()
def info(config: Path = typer.Option(DEFAULT_CONFIG, help="Pipeline config path")) -> None:
    """Show pipeline steps and their status."""
    from planefuse.core.pipeline_runner import load_pipeline_config

    pipeline_cfg = load_pipeline_config(config)
    table = Table(title=f"Pipeline: {pipeline_cfg.project_name}")
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Module", style="green")
    table.add_column("Enabled", style="yellow")
    table.add_column("Depends On", style="dim")

    for i, step in enumerate(pipeline_cfg.steps, 1):
        table.add_row(
            str(i),
            step.name,
            step.module,
            "Y" if step.enabled else "N",
            ", ".join(step.depends_on) if step.depends_on else "-",
        )
    console.print(table)


@app.command()
def fuse(
    detections: Path = typer.Argument(..., help="detections.json with per-batch planes"),
    output_root: Path = typer.Option(Path("./data"), "--output", "-o", help="Data root for outputs"),
    step_config: Path = typer.Option(DEFAULT_STEP_CONFIG, "--config", "-c", help="Plane fusion config YAML"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Fuse the planes of one detections file and print a summary."""
    setup_logging(log_level)
    from planefuse.core.pipeline_runner import load_step_config
    from planefuse.steps.s01_plane_fusion.config import PlaneFusionConfig
    from planefuse.steps.s01_plane_fusion.contracts import FusedPlane, PlaneFusionInput
    from planefuse.steps.s01_plane_fusion.step import PlaneFusionStep
    from planefuse.utils.io import load_json_list

    if not detections.exists():
        console.print(f"[red]Detections file not found: {detections}[/red]")
        raise typer.Exit(1)

    cfg = load_step_config(step_config, PlaneFusionConfig)
    step = PlaneFusionStep(config=cfg, data_root=output_root)
    output = step.execute(PlaneFusionInput(detections_file=detections))

    planes = load_json_list(output.fused_planes_file, FusedPlane)
    table = Table(title=f"Fused planes ({output.num_input_objects} -> {output.num_fused_planes})")
    table.add_column("#", style="dim")
    table.add_column("Equation", style="cyan")
    table.add_column("Points", style="green")
    table.add_column("Sources", style="yellow")
    table.add_column("Hull area", style="dim")
    for plane in planes:
        table.add_row(
            str(plane.index),
            "[" + ", ".join(f"{c:.3f}" for c in plane.equation) + "]",
            str(plane.num_points),
            ", ".join(f"{s.batch}:{s.object_id}" for s in plane.sources),
            f"{plane.hull_area:.2f}",
        )
    console.print(table)
    if output.num_failed_objects or output.num_failed_groups:
        console.print(
            f"[yellow]{output.num_failed_objects} detections dropped, "
            f"{output.num_failed_groups} groups left unmerged[/yellow]"
        )
    console.print(f"[green]Written:[/green] {output.fused_planes_file}")


if __name__ == "__main__":
    app()
