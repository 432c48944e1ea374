"""
Fit Vivaldi coordinates to a latency matrix and print them as JSON.

The input uses the PlanetLab layout from the NetLatency data sets: one row
per node, whitespace separated RTTs in milliseconds.

    python examples/planetlab.py PlanetLabData_1 --dimensions 3 --rounds 50
"""

import dataclasses
import sys

import click
import msgspec

from vivaldi_nc.env import Env, load_env
from vivaldi_nc.logging import LoggingConfig
from vivaldi_nc.models import VivaldiConfig
from vivaldi_nc.simulation import LatencyMatrix, VivaldiSimulation


@click.command(help="Fit Vivaldi coordinates to the latency matrix in FILENAME.")
@click.argument("filename", type=click.Path(exists=True, dir_okay=False))
@click.option("--dimensions", default=None, type=int)
@click.option("--rounds", default=50, type=int, show_default=True)
@click.option("--checkpoint-every", default=10, type=int, show_default=True)
@click.option("--seed", default=0, type=int, show_default=True)
@click.option("--symmetric", is_flag=True, help="Average each RTT with its reverse.")
@click.option("--log-level", default=None, type=str)
@click.option("--env-file", default=".env", type=str, show_default=True)
def fit(
    filename: str,
    dimensions: int | None,
    rounds: int,
    checkpoint_every: int,
    seed: int,
    symmetric: bool,
    log_level: str | None,
    env_file: str,
):
    env = load_env(Env, env_file=env_file)

    logging_config = LoggingConfig()
    logging_config.update(**env.get_logging_config())
    if log_level:
        logging_config.update(log_level=log_level)

    config = VivaldiConfig.from_env(env)
    if dimensions is not None:
        config = dataclasses.replace(config, dimensions=dimensions)

    matrix = LatencyMatrix.load(filename)
    if symmetric:
        matrix = matrix.symmetrized()

    simulation = VivaldiSimulation(matrix, config=config, seed=seed)
    simulation.run(rounds, checkpoint_every=checkpoint_every)

    sys.stdout.buffer.write(
        msgspec.json.format(
            msgspec.json.encode(
                [coordinate.to_dict() for coordinate in simulation.coordinates()]
            ),
            indent=2,
        )
        + b"\n"
    )


if __name__ == "__main__":
    fit()
