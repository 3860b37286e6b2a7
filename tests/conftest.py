import pytest
import taichi as ti

from silo_flow.config import SiloConfig


#one taichi runtime for the whole session, on the cpu so it runs anywhere
ti.init(arch=ti.cpu, random_seed=0)


@pytest.fixture
def small_config():
    return SiloConfig(layers=3, particles_per_layer=400, seed=7)
