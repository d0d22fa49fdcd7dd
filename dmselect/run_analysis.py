"""
Main entry point for the H->gamma gamma + DM selection.

Reads diphoton ntuples, applies the cutflow event by event, sorts the
selected events into the categories of one scheme, and writes the
per-category mass points together with cutflow and categorization
reports.

Supports serial execution, local multi-process parallelism via
ProcessPoolExecutor, and a local Dask cluster.
"""

import argparse
import glob
import logging
import os
import time
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed

import yaml
import awkward as ak

from dmselect.analysis.exceptions import ConfigurationError, DataLoadError
from dmselect.analysis.io import DEFAULT_TREE, load_events
from dmselect.analysis.masspoints import MASS_RANGE, MassPoints
from dmselect.analysis.selection import (
    merge_categorizations,
    merge_cutflows,
    print_categorization,
    print_cutflow,
    selector_from_config,
    write_categorization,
    write_cutflow,
)
from dmselect.analysis.weights import event_weight, is_weighted_sample, sample_scale


logger = logging.getLogger(__name__)


# Argument parsing and config loading
def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="H->gamma gamma + DM event selection and categorization."
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--sample",
        default="data",
        help="Name of the sample to process (a key of 'samples' in the config).",
    )
    parser.add_argument(
        "--scheme",
        default=None,
        help="Categorization scheme for the mass points (default from config).",
    )
    parser.add_argument(
        "--n-workers",
        type=int,
        default=None,
        help="Number of worker processes (default: n_workers from the config, else 1).",
    )
    parser.add_argument(
        "--dask",
        action="store_true",
        help="Run the per-file jobs on a local Dask cluster.",
    )
    parser.add_argument(
        "--from-file",
        action="store_true",
        help="Load previously saved mass points instead of reading ntuples.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def load_config(path):
    with open(path) as f:
        return yaml.safe_load(f)


def get_scheme(config, scheme=None):
    if scheme:
        return scheme
    return config.get("mass_points", {}).get("scheme", "splitETMiss")


def get_output_dir(config, sample_name):
    return os.path.join(config["output_dir"], sample_name)


def build_selector(config, scheme):
    """
    Selector for the job, checked against the job requirements.

    The event loop needs an aggregate cut and a declared scheme. If the
    config has a ``selection.manifest`` block (``cuts`` and
    ``categories``), the registered cuts and schemes must match it.
    """
    selector = selector_from_config(config)
    if selector.cuts.aggregate is None:
        raise ConfigurationError("The selection needs an aggregate cut")
    if not selector.has_scheme(scheme):
        raise ConfigurationError(f"Category scheme '{scheme}' is not declared")

    manifest = (config.get("selection", {}) or {}).get("manifest")
    if manifest:
        selector.validate_manifest(manifest.get("cuts", []), manifest.get("categories", []))
    return selector


# Per-file analysis
def process_file(filename, config, sample_name, scheme):
    """
    Per-file selection and categorization.

    Steps:
      1. Load the diphoton branches.
      2. For every event: compute its weight, test the full cutflow.
      3. Classify each selected event and store its m_yy in that category.
      4. Return the mass points and the rendered cutflow/categorization.
    """
    selector = build_selector(config, scheme)
    arrays = load_events(filename, tree_name=config.get("tree_name", DEFAULT_TREE))

    aggregate = selector.cuts.aggregate
    weighted = is_weighted_sample(config, sample_name)
    scale = sample_scale(config, sample_name)

    points = MassPoints(scheme, selector.n_categories(scheme), weighted=weighted)
    n_unclassified = 0

    for event in ak.to_list(arrays):
        selector.set_event(event)
        weight = event_weight(event, scale, weighted)

        if not selector.passes_cut(aggregate, weight):
            continue

        category = selector.classify(scheme, weight)
        if category is None:
            n_unclassified += 1
            continue
        points.append(category, event["m_yy"], weight)

    info = {
        "filename": filename,
        "n_events": len(arrays),
        "n_selected": len(points),
        "n_unclassified": n_unclassified,
        "cutflow": selector.render_cutflow(weighted=False),
        "cutflow_weighted": selector.render_cutflow(weighted=True),
        "categorization": selector.render_categorization(weighted=False),
        "categorization_weighted": selector.render_categorization(weighted=True),
    }
    return points, info


def safe_process_file(fname, config, sample_name, scheme):
    """
    Wrapper so that a bad file doesn't kill the whole job.
    """
    try:
        return process_file(fname, config, sample_name, scheme)
    except Exception as e:
        logger.warning("Error in file %s: %s", fname, e)
        return None


def run_files(files, config, sample_name, scheme, n_workers=1, use_dask=False):
    """
    Process every file, serially or in parallel.

    Returns
    -------
    list of (MassPoints, info) tuples for the files that succeeded.
    """
    results = []

    if use_dask:
        from dmselect.distributed.executor import (
            compute_tasks,
            create_local_client,
            map_files,
        )

        client = create_local_client(n_workers=n_workers)
        try:
            tasks = map_files(client, files, safe_process_file, config, sample_name, scheme)
            outputs = compute_tasks(client, tasks)
        finally:
            client.close()
        for fname, out in zip(files, outputs):
            if out is not None:
                results.append(out)
            logger.info("Completed %s", fname)

    # Serial path for N=1: avoids multiprocessing overhead
    elif n_workers == 1:
        for i, fname in enumerate(files, start=1):
            out = safe_process_file(fname, config, sample_name, scheme)
            if out is not None:
                results.append(out)
            logger.info("[%d/%d] Completed %s", i, len(files), fname)

    else:
        with ProcessPoolExecutor(max_workers=n_workers) as pool:
            future_to_file = {
                pool.submit(safe_process_file, fname, config, sample_name, scheme): fname
                for fname in files
            }
            for i, future in enumerate(as_completed(future_to_file), start=1):
                fname = future_to_file[future]
                try:
                    out = future.result()
                except Exception as e:
                    logger.error("%s: %s", fname, e)
                    continue
                if out is not None:
                    results.append(out)
                logger.info("[%d/%d] Completed %s", i, len(files), fname)

    return results


def merge_results(results, scheme, n_categories, weighted):
    """
    Combine per-file outputs into one set of mass points and reports.
    """
    points = MassPoints(scheme, n_categories, weighted=weighted)
    infos = []
    for file_points, info in results:
        points.extend(file_points)
        infos.append(info)

    suffix = "_weighted" if weighted else ""
    cutflow = merge_cutflows(info["cutflow" + suffix] for info in infos)
    categorization = merge_categorizations(
        info["categorization" + suffix] for info in infos
    )
    summary = {
        "n_files": len(infos),
        "n_events": sum(info["n_events"] for info in infos),
        "n_selected": sum(info["n_selected"] for info in infos),
        "n_unclassified": sum(info["n_unclassified"] for info in infos),
        "cutflow": cutflow,
        "categorization": categorization,
    }
    return points, summary


def create_mass_points(config, sample_name, scheme, n_workers=1, use_dask=False):
    # Fail on a bad selection before touching any file
    selector = build_selector(config, scheme)

    pattern = os.path.join(config["data_dir"], config["samples"][sample_name]["file_pattern"])
    files = sorted(glob.glob(pattern))

    if not files:
        raise RuntimeError(f"No input files found for pattern {pattern}")

    print(f"Found {len(files)} input files.")

    # Decide how many workers to use
    max_procs = multiprocessing.cpu_count() or 1
    if n_workers > max_procs:
        logger.info(
            "Requested %d workers but only %d cores available; using %d.",
            n_workers, max_procs, max_procs,
        )
        n_workers = max_procs

    print(f"Using {n_workers} worker process(es).")

    results = run_files(files, config, sample_name, scheme, n_workers, use_dask)
    if not results:
        raise RuntimeError("No successful per-file results; nothing to merge.")

    weighted = is_weighted_sample(config, sample_name)
    n_categories = selector.n_categories(scheme)
    points, summary = merge_results(results, scheme, n_categories, weighted)

    outdir = get_output_dir(config, sample_name)
    os.makedirs(outdir, exist_ok=True)
    points.save(outdir)

    write_cutflow(
        summary["cutflow"], os.path.join(outdir, f"cutflow_{sample_name}.txt")
    )
    write_categorization(
        summary["categorization"],
        os.path.join(outdir, f"categorization_{scheme}_{sample_name}.txt"),
    )

    print_cutflow(summary["cutflow"])
    print_categorization(summary["categorization"])

    print(f"Processed {summary['n_files']} files.")
    print(f"Total events read: {summary['n_events']}")
    print(f"Selected and categorized events: {summary['n_selected']}")
    if summary["n_unclassified"]:
        print(f"Selected but unclassifiable events: {summary['n_unclassified']}")

    return points


def load_or_create_mass_points(config, sample_name, scheme, from_file=False,
                               n_workers=1, use_dask=False):
    """
    Load saved mass points if requested, otherwise (or if loading fails)
    build them from the ntuples.
    """
    if from_file:
        weighted = is_weighted_sample(config, sample_name)
        n_categories = build_selector(config, scheme).n_categories(scheme)
        try:
            return MassPoints.from_files(
                get_output_dir(config, sample_name), scheme, n_categories, weighted
            )
        except DataLoadError as e:
            logger.error("%s; creating new mass points", e)

    return create_mass_points(config, sample_name, scheme, n_workers, use_dask)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    config = load_config(args.config)
    scheme = get_scheme(config, args.scheme)
    # An explicit --n-workers wins over the config
    n_workers = args.n_workers
    if n_workers is None:
        n_workers = config.get("n_workers", 1)

    start_time = time.perf_counter()
    points = load_or_create_mass_points(
        config, args.sample, scheme, args.from_file, n_workers, args.dask
    )
    wall_time = time.perf_counter() - start_time

    mp_cfg = config.get("mass_points", {})
    nbins = mp_cfg.get("nbins", 55)
    lo = mp_cfg.get("min", MASS_RANGE[0])
    hi = mp_cfg.get("max", MASS_RANGE[1])
    for index in range(points.n_categories):
        h = points.histogram(index, nbins, lo, hi)
        print(
            f"{scheme}_{index}: {len(points.masses(index))} points, "
            f"sum of weights = {h.sum().value:.4g}"
        )

    print(f"Total wall time: {wall_time:.2f} s")
    print(f"Saved outputs to {get_output_dir(config, args.sample)}")


if __name__ == "__main__":
    main()
