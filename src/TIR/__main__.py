"""
Command-line interface for the TIR toolkit.

  tir simulate  -o cohort.csv          write a synthetic cohort
  tir segment   -i cohort.csv          per-patient labeled intervals
  tir analyze   -i cohort.csv          population time in range + bootstrap
"""

import json
import logging
import pathlib
import sys
import typing
from datetime import datetime

import click
import numpy as np
import pandas as pd
from stairval.notepad import create_notepad

from .aggregator import aggregate_table
from .bootstrap import WEIGHTINGS, bootstrap
from .loader import load_measurements, measurements_frame
from .policy import (
    DEFAULT_CARRY_FORWARD,
    DEFAULT_HIGH,
    DEFAULT_INTERP_LIMIT,
    DEFAULT_LOW,
    ConfigurationError,
    Policy,
    TargetRange,
)
from .segmenter import SegmentationError, group_by_patient, insert_crossings, segment_population
from .summary import samples_frame, summarize
from .synthetic import simulate_cohort


@click.group()
def main():
    """TIR: time in range of irregularly sampled clinical measurements."""
    pass


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _logging_options(func):
    func = click.option(
        "--log-file-path",
        type=click.Path(dir_okay=False, writable=True),
        help="Append timestamped logs to this file",
    )(func)
    func = click.option(
        "--verbose-logging",
        is_flag=True,
        help="Also emit debug logs to stderr",
    )(func)
    return func


def _input_options(func):
    """Options shared by the commands that read and segment a table."""
    options = [
        click.option(
            "-i",
            "--input-path",
            "input_path",
            required=True,
            type=click.Path(exists=True, dir_okay=False),
            help="CSV or .xlsx table with one row per visit",
        ),
        click.option("--patient-column", default="patient_id", show_default=True),
        click.option("--date-column", default="date", show_default=True),
        click.option("--value-column", default="hct", show_default=True),
        click.option("--low", type=float, default=DEFAULT_LOW, envvar="TIR_LOW", show_default=True,
                      help="lower bound of the target band"),
        click.option("--high", type=float, default=DEFAULT_HIGH, envvar="TIR_HIGH", show_default=True,
                      help="upper bound of the target band"),
        click.option("--interp-limit", type=float, default=DEFAULT_INTERP_LIMIT, envvar="TIR_INTERP_LIMIT",
                      show_default=True, help="gaps shorter than this (days) are interpolated"),
        click.option("--carry-forward", type=float, default=DEFAULT_CARRY_FORWARD, envvar="TIR_CARRY_FORWARD",
                      show_default=True, help="days a value is carried forward"),
        click.option("--workers", type=click.IntRange(min=1), default=1, envvar="TIR_WORKERS",
                      show_default=True, help="thread pool size"),
        click.option("--skip-failed", is_flag=True,
                     help="skip patients whose series cannot be segmented instead of aborting"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(low: float, high: float, interp_limit: float, carry_forward: float) -> tuple[TargetRange, Policy]:
    try:
        return TargetRange(low=low, high=high), Policy(interp_limit=interp_limit, carry_forward=carry_forward)
    except ConfigurationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


def _report_issues(notepad):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in input:")
        for err in notepad.errors():
            click.echo(f"- {err.message}")
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in input:")
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


def _prepare_output_dir(output_dir: typing.Optional[str] = None) -> pathlib.Path:
    # use YYYY-MM-DD_HH-MM-SS for human-readable timestamps
    if output_dir:
        out = pathlib.Path(output_dir)
    else:
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        out = pathlib.Path.cwd() / "tir_results" / timestamp
    out.mkdir(parents=True, exist_ok=True)
    return out


def _load_and_segment(notepad, input_path, patient_column, date_column, value_column,
                      target_range, policy, workers, skip_failed):
    measurements = load_measurements(
        input_path,
        notepad,
        patient_column=patient_column,
        date_column=date_column,
        value_column=value_column,
    )
    if not measurements:
        _report_issues(notepad)
        raise click.ClickException(f"No usable measurements in {input_path}")
    try:
        intervals = segment_population(
            measurements, target_range, policy,
            notepad=notepad, skip_failed=skip_failed, workers=workers,
        )
    except SegmentationError as e:
        raise click.ClickException(str(e))
    return measurements, intervals


@main.command(name="simulate")
@click.option("-o", "--output-path", required=True, type=click.Path(dir_okay=False, writable=True),
              help="CSV file to write")
@click.option("-n", "--patients", type=click.IntRange(min=1), default=50, show_default=True)
@click.option("--seed", type=int, default=0, envvar="TIR_SEED", show_default=True)
@click.option("--min-visits", type=click.IntRange(min=1), default=2, show_default=True)
@click.option("--max-visits", type=click.IntRange(min=1), default=12, show_default=True)
@click.option("--mean-gap", type=float, default=10.0, show_default=True, help="mean days between visits")
@_logging_options
def simulate(output_path: str, patients: int, seed: int, min_visits: int, max_visits: int,
             mean_gap: float, verbose_logging: bool, log_file_path: typing.Optional[str]):
    """
    Write a synthetic hematocrit cohort (patient_id, date, hct) to a CSV file.
    """
    _configure_logging(verbose_logging, log_file_path)
    if min_visits > max_visits:
        raise click.BadParameter("--min-visits must not exceed --max-visits")
    rng = np.random.default_rng(seed)
    cohort = simulate_cohort(patients, rng, visits=(min_visits, max_visits), mean_gap=mean_gap)
    cohort.to_csv(output_path, index=False)
    click.echo(f"Wrote {len(cohort)} visits for {patients} patients to {output_path}")


@main.command(name="segment")
@_input_options
@click.option("-o", "--output-path", type=click.Path(dir_okay=False, writable=True),
              help="write intervals to this CSV instead of stdout")
@click.option("--points-path", type=click.Path(dir_okay=False, writable=True),
              help="also write each series with inserted crossing points to this CSV")
@_logging_options
def segment(input_path, patient_column, date_column, value_column, low, high, interp_limit,
            carry_forward, workers, skip_failed, output_path, points_path, verbose_logging, log_file_path):
    """
    Segment each patient's series into above/target/below/missing intervals.
    """
    _configure_logging(verbose_logging, log_file_path)
    target_range, policy = _build_config(low, high, interp_limit, carry_forward)
    notepad = create_notepad("measurements")
    measurements, intervals = _load_and_segment(
        notepad, input_path, patient_column, date_column, value_column,
        target_range, policy, workers, skip_failed,
    )
    _report_issues(notepad)

    frame = pd.DataFrame(
        [
            {
                "patient_id": interval.patient_id,
                "start": interval.start,
                "duration": interval.duration,
                "label": interval.label.value,
                "source": interval.source.value,
            }
            for interval in intervals
        ],
        columns=["patient_id", "start", "duration", "label", "source"],
    )
    if output_path:
        frame.to_csv(output_path, index=False)
        click.echo(f"Wrote {len(frame)} intervals to {output_path}")
    else:
        click.echo(frame.to_string(index=False))

    if points_path:
        points = [
            point
            for series in group_by_patient(measurements).values()
            for point in insert_crossings(series, target_range, policy.interp_limit)
        ]
        measurements_frame(points).to_csv(points_path, index=False)
        click.echo(f"Wrote {len(points)} points to {points_path}")


@main.command(name="analyze")
@_input_options
@click.option("--iterations", type=click.IntRange(min=1), default=1000, envvar="TIR_ITERATIONS",
              show_default=True, help="bootstrap iterations")
@click.option("--seed", type=int, default=0, envvar="TIR_SEED", show_default=True)
@click.option("--weighting", type=click.Choice(WEIGHTINGS), default="membership", show_default=True,
              help="how a patient drawn more than once is counted")
@click.option("--output-dir", type=click.Path(file_okay=False),
              help="directory for result tables (default: ./tir_results/<timestamp>)")
@click.option("--plot", is_flag=True, help="also save a density plot of the bootstrap percents")
@click.option("--json", "as_json", is_flag=True, help="print results as JSON")
@_logging_options
def analyze(input_path, patient_column, date_column, value_column, low, high, interp_limit,
            carry_forward, workers, skip_failed, iterations, seed, weighting, output_dir, plot,
            as_json, verbose_logging, log_file_path):
    """
    Population time in range with bootstrap mean and standard deviation per label.
    """
    _configure_logging(verbose_logging, log_file_path)
    target_range, policy = _build_config(low, high, interp_limit, carry_forward)
    notepad = create_notepad("measurements")
    _, intervals = _load_and_segment(
        notepad, input_path, patient_column, date_column, value_column,
        target_range, policy, workers, skip_failed,
    )
    if not as_json:
        _report_issues(notepad)
    if not intervals:
        raise click.ClickException("No patient could be segmented")

    population = aggregate_table(intervals)
    samples = bootstrap(intervals, iterations, seed, weighting=weighting, workers=workers)
    summary = summarize(samples)

    out = _prepare_output_dir(output_dir)
    population.to_csv(out / "aggregate.csv", index=False)
    samples_frame(samples).to_csv(out / "bootstrap.csv", index=False)
    summary.to_csv(out / "summary.csv", index=False)
    if plot:
        from .plotting import plot_percent_densities

        plot_percent_densities(samples, out / "densities.png")

    if as_json:
        payload = {
            "patients": len({interval.patient_id for interval in intervals}),
            "aggregate": json.loads(population.to_json(orient="records")),
            "summary": json.loads(summary.to_json(orient="records")),
            "output_dir": str(out),
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo("Population time in range:")
    click.echo(population.to_string(index=False))
    click.echo("")
    click.echo(f"Bootstrap ({iterations} iterations, seed {seed}, {weighting}):")
    click.echo(summary.to_string(index=False))
    click.echo(f"Wrote results to {out}")


if __name__ == "__main__":
    main()
