""" Batch running and summarising of simulated trials.

Simulations are plain JSON-able dicts, one per simulated trial, so that
batches can be saved incrementally and summarised later.
"""

import json
import logging
from collections import OrderedDict
from datetime import datetime
from itertools import product

from mpitrials.utils import filter_list_of_dicts

logger = logging.getLogger(__name__)


def _save_sims(sims, out_file):
    try:
        with open(out_file, "w") as outfile:
            json.dump(sims, outfile)
    except OSError as e:
        logger.error("Error writing %s: %s", out_file, e)


def _run_batches(next_sim, n1, n2, out_file):
    sims = []
    for batch in range(n1):
        sims.extend(next_sim() for _ in range(n2))
        if out_file:
            _save_sims(sims, out_file)
        logger.info("Batch %s at %s: %s sims", batch, datetime.now(), len(sims))
    return sims


def run_sims(sim_func, n1=1, n2=1, out_file=None, **kwargs):
    """Runs simulations using a delegate function.

    Args:
        sim_func (callable): The function called to yield a single simulated
            trial report.
        n1 (int, optional): The number of batches. Defaults to 1.
        n2 (int, optional): The number of trials per batch. Defaults to 1.
        out_file (str, optional): File that all sims so far are written to
            after each batch. Defaults to None.
        **kwargs: Keyword arguments passed to `sim_func` on every call.

    Returns:
        list: The simulation reports, in the order they were run.
    """
    return _run_batches(lambda: sim_func(**kwargs), n1, n2, out_file)


def sim_parameter_space(sim_func, ps, n1=1, n2=None, out_file=None):
    """Runs simulations across a parameter space.

    Each call to `sim_func` receives the next combination of parameters
    from `ps` as keyword arguments, cycling through the space.

    Args:
        sim_func (callable): The function called to yield a single
            simulated trial report.
        ps (mpitrials.utils.ParameterSpace): The parameter space to explore.
        n1 (int, optional): The number of batches. Defaults to 1.
        n2 (int, optional): Trials per batch. Defaults to the size of `ps`,
            so each batch visits every combination once.
        out_file (str, optional): As in :func:`run_sims`.

    Returns:
        list: The simulation reports.
    """
    if not n2 or n2 <= 0:
        n2 = int(ps.size())
    params = ps.get_cyclical_iterator()
    return _run_batches(lambda: sim_func(**next(params)), n1, n2, out_file)


def _partition(sims, ps, var_map=None):
    """Yields ``(combo, params, subset)`` for each combination in `ps` with sims.

    `var_map` maps report keys to parameter names in `ps`.
    """
    if var_map is None:
        var_map = OrderedDict((label, label) for label in ps.keys())
    report_keys = list(var_map)
    for combo in product(*[ps[var_map[key]] for key in report_keys]):
        params = dict(zip(report_keys, combo))
        subset = filter_list_of_dicts(sims, params)
        if subset:
            yield combo, params, subset


def extract_sim_data(sims, ps, func_map, var_map=None, return_type="dataframe"):
    """Summarises simulations separately for each parameter combination.

    Args:
        sims (list): Simulation reports, e.g. loaded from JSON.
        ps (mpitrials.utils.ParameterSpace): The parameters that distinguish
            the simulations.
        func_map (dict): Map from summary name to a function of
            ``(sims, params)``.
        var_map (dict, optional): Map from report key to parameter name in
            `ps`. Names are assumed equal if None.
        return_type (str, optional): 'dataframe' for a pandas.DataFrame
            indexed by parameter combination; 'tuple' for a
            ``(rows, index)`` pair of lists.

    Returns:
        pandas.DataFrame or tuple: The summaries. Combinations with no sims
            are left out.
    """
    index, rows = [], []
    for combo, params, subset in _partition(sims, ps, var_map):
        index.append(combo)
        rows.append(
            OrderedDict((name, func(subset, params)) for name, func in func_map.items())
        )

    if return_type != "dataframe":
        return rows, index

    import pandas as pd

    if not rows:
        return pd.DataFrame(columns=list(func_map))
    names = list(var_map) if var_map is not None else list(ps.keys())
    return pd.DataFrame(rows, index=pd.MultiIndex.from_tuples(index, names=names))

