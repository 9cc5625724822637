import pytest

from mpitrials.dosefinding.mpi import MPIDesign


@pytest.fixture(scope="session")
def design():
    return MPIDesign(0.2, 0.05, 0.8, 0.2, 0.05, 0.8)


@pytest.fixture(scope="session")
def quick_registry(design):
    """Decision tables for every multiple of 3 up to 24, quick integration."""
    return design.make_registry(range(3, 25, 3), use_quick_integration=True)
