from collections import OrderedDict
from collections.abc import Iterable
from functools import reduce, update_wrapper
from itertools import cycle, islice, product

import numpy as np


def filter_list_of_dicts(list_of_dicts, filter_dict):
    """Keeps the simulation reports whose values match every item in `filter_dict`.

    Reports loaded from JSON hold lists where the simulating code used
    tuples, so a tuple filter value also matches the equal list.

    Args:
        list_of_dicts: Simulation reports.
        filter_dict: Map of report key to required value.

    Returns:
        The matching reports, in their original order.
    """

    def matches(report):
        for key, val in filter_dict.items():
            found = report[key]
            if isinstance(val, tuple) and isinstance(found, list):
                found = tuple(found)
            if found != val:
                return False
        return True

    return [report for report in list_of_dicts if matches(report)]


def invoke_map_reduce_on_list(a_list, function_map):
    """Summarises a list with one map-reduce per named item.

    Args:
        a_list: The items to summarise, typically simulation reports.
        function_map: Map of item name to a ``(map_func, reduce_func)`` pair.

    Returns:
        OrderedDict: Item name to reduced value, in the order of `function_map`.
    """
    return OrderedDict(
        (item, reduce(reduce_func, map(map_func, a_list)))
        for item, (map_func, reduce_func) in function_map.items()
    )


def reduce_maps_by_summing(x, y):
    """Adds two maps key by key. Keys are taken from `x`."""
    return OrderedDict((k, x[k] + y[k]) for k in x)


def atomic_to_json(obj):
    """Unwraps numpy scalars, which :mod:`json` cannot serialise."""
    return obj.item() if isinstance(obj, np.generic) else obj


def iterable_to_json(obj):
    """Converts an array or other iterable to a list of JSON-friendly values.

    Non-iterable objects are passed to :func:`atomic_to_json`.
    """
    if isinstance(obj, Iterable) and not isinstance(obj, str):
        return [atomic_to_json(x) for x in obj]
    return atomic_to_json(obj)


class Memoize:
    """Caches the results of a function by its positional arguments.

    Arguments must be hashable.

    Examples:
        >>> cube = Memoize(lambda x: x**3)
        >>> cube(2.0)
        8.0
        >>> len(cube.memo)
        1
    """

    def __init__(self, f):
        self.f = f
        self.memo = {}
        update_wrapper(self, f)

    def __call__(self, *args):
        try:
            return self.memo[args]
        except KeyError:
            result = self.memo[args] = self.f(*args)
            return result


class ParameterSpace:
    """Named lists of values whose combinations parameterise simulations.

    Examples:
        >>> ps = ParameterSpace({"cohort_size": [3, 6]})
        >>> ps.add("max_sample_size", [24, 30])
        >>> int(ps.size())
        4
    """

    def __init__(self, vals_map=None):
        self.vals_map = OrderedDict()
        for label, values in (vals_map or {}).items():
            self.add(label, values)

    def add(self, label, values):
        """Adds a parameter with the values it can take."""
        self.vals_map[label] = list(values)

    def combinations(self):
        """Lists every combination of values as a dict, last parameter varying fastest."""
        labels = list(self.vals_map)
        return [
            dict(zip(labels, combo)) for combo in product(*self.vals_map.values())
        ]

    def get_cyclical_iterator(self, limit=-1):
        """Iterates over the combinations, starting again after the last one.

        Args:
            limit: Stop after this many combinations. Negative values never stop.

        Returns:
            An iterator of parameter dicts.
        """
        combos = cycle(self.combinations())
        if limit < 0:
            return combos
        return islice(combos, limit)

    def keys(self):
        return self.vals_map.keys()

    def dimensions(self):
        """The number of values of each parameter, as a numpy array."""
        return np.array([len(values) for values in self.vals_map.values()])

    def size(self):
        return np.prod(self.dimensions())

    def __getitem__(self, key):
        return self.vals_map[key]
