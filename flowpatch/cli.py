#!/usr/bin/env python3
# flowpatch/cli.py

import logging
from pathlib import Path
from typing import List, Optional

import typer

from flowpatch.autofix.fixer import autofix_graph
from flowpatch.config import ConfigError, load_config
from flowpatch.remote.client import N8nApiClient
from flowpatch.remote.store import FileWorkflowStore
from flowpatch.structural.checker import validate_graph
from flowpatch.structural.metrics import compute_structural_metrics
from flowpatch.structural.schema import VALIDATION_PROFILES
from flowpatch.tools import workflows as tools
from flowpatch.utils.io import read_json
from flowpatch.utils.logger import init_logger

app = typer.Typer(help="flowpatch CLI - validate, autofix and patch n8n workflows")


def _store(file: Optional[Path], workflow_id: Optional[str]):
    if file is not None:
        return FileWorkflowStore(file), workflow_id or file.stem
    if not workflow_id:
        raise typer.BadParameter("Pass either --file or --id")
    try:
        cfg = load_config()
    except ConfigError as e:
        raise typer.BadParameter(str(e))
    return N8nApiClient(cfg.base_url, cfg.api_key, timeout=cfg.timeout), workflow_id


def _emit(response: dict) -> None:
    for block in response.get("content", []):
        typer.echo(block.get("text", ""))
    if response.get("isError"):
        raise typer.Exit(code=1)


FileOpt = typer.Option(None, "--file", "-f", help="Local workflow JSON (used instead of the n8n API)")
IdOpt = typer.Option(None, "--id", help="Workflow ID on the configured n8n instance")

REPORT_COLUMNS = [
    "file", "name", "valid", "nodes", "triggers", "errors", "warnings", "fixes",
    "edges", "connected_ratio", "acyclic", "orphans", "unreachable",
]


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    init_logger(level=logging.DEBUG if verbose else None)


@app.command()
def validate(
    file: Optional[Path] = FileOpt,
    workflow_id: Optional[str] = IdOpt,
    profile: str = typer.Option("runtime", "--profile", "-p", help="minimal | runtime | ai-friendly | strict"),
    no_nodes: bool = typer.Option(False, "--no-nodes", help="Skip node checks"),
    no_connections: bool = typer.Option(False, "--no-connections", help="Skip connection checks"),
    no_expressions: bool = typer.Option(False, "--no-expressions", help="Skip expression checks"),
):
    """
    Validate a workflow's nodes, connections and expressions.
    """
    if profile not in VALIDATION_PROFILES:
        raise typer.BadParameter(f"Invalid profile '{profile}'. Choose one of: {', '.join(VALIDATION_PROFILES)}")
    store, wf_id = _store(file, workflow_id)
    _emit(tools.validate_workflow(store, {
        "id": wf_id,
        "options": {
            "validateNodes": not no_nodes,
            "validateConnections": not no_connections,
            "validateExpressions": not no_expressions,
            "profile": profile,
        },
    }))


@app.command()
def autofix(
    file: Optional[Path] = FileOpt,
    workflow_id: Optional[str] = IdOpt,
    apply: bool = typer.Option(False, "--apply", help="Write the repaired workflow back"),
    fix_type: Optional[List[str]] = typer.Option(None, "--type", "-t", help="Restrict to these fix types (repeatable)"),
    confidence: str = typer.Option("medium", "--confidence", help="Minimum confidence: high | medium | low"),
    max_fixes: int = typer.Option(50, "--max-fixes", help="Cap on reported/applied fixes"),
):
    """
    Detect (and with --apply, repair) common workflow defects.
    """
    store, wf_id = _store(file, workflow_id)
    args = {"id": wf_id, "applyFixes": apply, "confidenceThreshold": confidence, "maxFixes": max_fixes}
    if fix_type:
        args["fixTypes"] = list(fix_type)
    _emit(tools.autofix_workflow(store, args))


@app.command()
def update(
    operations: Path = typer.Option(..., "--ops", "-o", exists=True, readable=True, help="JSON file with a list of diff operations"),
    file: Optional[Path] = FileOpt,
    workflow_id: Optional[str] = IdOpt,
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would change without saving"),
    continue_on_error: bool = typer.Option(False, "--continue-on-error", help="Attempt every operation"),
):
    """
    Apply diff operations to a workflow.
    """
    ops = read_json(operations)
    if isinstance(ops, dict):
        ops = ops.get("operations", [])
    store, wf_id = _store(file, workflow_id)
    _emit(tools.apply_partial_update(store, {
        "id": wf_id,
        "operations": ops,
        "validateOnly": dry_run,
        "continueOnError": continue_on_error,
    }))


@app.command()
def get(
    file: Optional[Path] = FileOpt,
    workflow_id: Optional[str] = IdOpt,
    mode: str = typer.Option("full", "--mode", "-m", help="full | details | structure | minimal"),
):
    """
    Print a workflow.
    """
    store, wf_id = _store(file, workflow_id)
    _emit(tools.get_workflow(store, {"id": wf_id, "mode": mode}))


@app.command()
def report(
    glob: str = typer.Option("bench/*/*/workflow.json", "--glob", help="Glob for workflow JSON files"),
    out: Path = typer.Option(Path("reports/validation.csv"), "--out", help="CSV path to write results"),
    profile: str = typer.Option("runtime", "--profile", "-p", help="Validation profile"),
):
    """
    Batch-validate workflow files and export a CSV report.
    """
    import glob as _glob
    import pandas as pd

    rows = []
    for fp_str in sorted(_glob.glob(glob)):
        fp = Path(fp_str)
        wf = read_json(fp)

        if not isinstance(wf, dict) or "nodes" not in wf:
            typer.echo(f"[skip] {fp} does not look like a workflow JSON (missing 'nodes'); skipping")
            continue

        v = validate_graph(wf, {"profile": profile})
        fx = autofix_graph(wf)
        m = compute_structural_metrics(wf)
        rows.append({
            "file": str(fp),
            "name": wf.get("name", ""),
            "valid": v["valid"],
            "nodes": v["summary"]["totalNodes"],
            "triggers": v["summary"]["triggerNodes"],
            "errors": v["summary"]["errorCount"],
            "warnings": v["summary"]["warningCount"],
            "fixes": len(fx.fixes),
            "edges": m["n_edges"],
            "connected_ratio": round(m["connected_ratio"], 3),
            "acyclic": m["acyclic"],
            "orphans": len(m["orphan_nodes"]),
            "unreachable": len(m["unreachable_nodes"]),
        })

    out.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows, columns=REPORT_COLUMNS).to_csv(out, index=False)
    typer.echo(f"[ok] wrote {out} ({len(rows)} workflows)")


if __name__ == "__main__":
    app()
