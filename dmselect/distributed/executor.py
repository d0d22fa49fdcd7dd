"""
Dask-based execution helpers

This module hides the details of starting a local Dask cluster
and submitting per-file selection tasks. Every task builds its own
Selector, so results are combined by the caller afterwards.
"""

from dask.distributed import Client, LocalCluster
from dask import delayed


def create_local_client(n_workers=4, threads_per_worker=1):
    """
    Create a local Dask client with a LocalCluster.

    Parameters
    ----------
    n_workers : int
        Number of workers to start.
    threads_per_worker : int
        Number of threads per worker.

    Returns
    -------
    dask.distributed.Client
        Connected Dask client.
    """
    cluster = LocalCluster(
        n_workers=n_workers,
        threads_per_worker=threads_per_worker,
        processes=False,  # threads-only, safe in WSL
    )
    client = Client(cluster)
    return client


def map_files(client, filenames, process_function, *args):
    """
    Wrap a per-file processing function as Dask delayed tasks.

    Parameters
    ----------
    client : dask.distributed.Client or None
        Active Dask client (unused when building the graph).
    filenames : list of str
        List of ROOT file paths to process.
    process_function : callable
        Function of the form process_function(filename, *args).
    *args
        Extra arguments passed to every call, e.g. config and sample name.

    Returns
    -------
    list of delayed objects representing per-file results.
    """
    return [delayed(process_function)(filename, *args) for filename in filenames]


def compute_tasks(client, tasks):
    """
    Run delayed tasks on the client and return their results in order.
    """
    futures = client.compute(tasks)
    return client.gather(futures)
