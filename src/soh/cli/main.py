"""Command-line interface for the SOH simulator.

Usage:
    soh simulate config.json --steps=100
    soh verify config.json
    soh coefficients 5.0 --model=bgk
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """SOH finite-volume solver for self-organized hydrodynamics."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--steps", type=int, default=None, help="Additional timesteps to run (default: run to final_time).")
@click.option("--output", "-o", type=str, default=None, help="Override the output parent directory.")
@click.option(
    "--restart",
    type=click.Path(exists=True),
    default=None,
    help="Restart from a checkpoint file, or from the latest one in a run directory.",
)
@click.option("--no-save", is_flag=True, help="Do not write checkpoints.")
@click.option(
    "--method",
    type=click.Choice(["roe", "hlle"], case_sensitive=False),
    default=None,
    help="Interface flux. Overrides config file setting.",
)
def simulate(
    config_file: str,
    steps: int | None,
    output: str | None,
    restart: str | None,
    no_save: bool,
    method: str | None,
) -> None:
    """Run an SOH simulation from a configuration file."""
    from soh.config import SimulationConfig
    from soh.diagnostics.checkpoint import latest_checkpoint
    from soh.engine import SimulationEngine

    click.echo(f"Loading config from {config_file}")
    try:
        config = SimulationConfig.from_file(config_file)
        if method:
            config.numerics.method = method.lower()
        if output:
            config.output.output_dir = output
        engine = SimulationEngine(config)
    except (ValidationError, ValueError) as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    if restart:
        ckpt = Path(restart)
        try:
            if ckpt.is_dir():
                ckpt = latest_checkpoint(ckpt)
            click.echo(f"Restarting from checkpoint: {ckpt}")
            engine.load_from_checkpoint(ckpt)
        except (FileNotFoundError, ValueError) as exc:
            click.echo(f"Restart error: {exc}", err=True)
            sys.exit(1)

    summary = engine.run(max_steps=steps, save=not no_save)

    click.echo("\n--- Simulation Summary ---")
    for key, val in summary.items():
        if isinstance(val, float):
            click.echo(f"  {key}: {val:.6e}")
        else:
            click.echo(f"  {key}: {val}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def verify(config_file: str) -> None:
    """Verify a configuration file is valid."""
    from soh.config import SimulationConfig
    from soh.fluid.scheme import SchemeParameters

    try:
        config = SimulationConfig.from_file(config_file)
        c1, c2, lam = config.model.resolve()
        dom = config.domain
        SchemeParameters(
            dx=dom.dx, dy=dom.dy, dt=config.numerics.dt,
            c1=c1, c2=c2, lam=lam,
            bcond_x=dom.bcond_x, bcond_y=dom.bcond_y,
            method=config.numerics.method,
        )
    except (ValidationError, ValueError) as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    click.echo("Configuration is valid:")
    click.echo(f"  Grid: {dom.ncellx} x {dom.ncelly}")
    click.echo(f"  Domain: {dom.Lx} x {dom.Ly}, bc=({dom.bcond_x}, {dom.bcond_y})")
    click.echo(f"  Coefficients: c1={c1:.6f}, c2={c2:.6f}, lam={lam:.6f}")
    click.echo(f"  dt: {config.numerics.dt:.2e}, steps: {config.numerics.n_steps}")
    click.echo(f"  Scheme: {config.numerics.method}")
    click.echo(f"  Force: {config.force.kind}")


@cli.command()
@click.argument("kappa", type=float)
@click.option(
    "--model",
    type=click.Choice(["fokker-planck", "bgk"], case_sensitive=False),
    default="fokker-planck",
    help="Kinetic model the coefficients are derived from.",
)
def coefficients(kappa: float, model: str) -> None:
    """Print the coefficients c1, c2, lam for a concentration KAPPA."""
    from soh.coefficients import coefficients_vicsek

    try:
        c1, c2, lam = coefficients_vicsek(kappa, model=model)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"c1 = {c1:.8f}")
    click.echo(f"c2 = {c2:.8f}")
    click.echo(f"lam = {lam:.8f}")


if __name__ == "__main__":
    cli()
