from silo_flow.config import FlowTuning, SiloConfig
from silo_flow.geometry import SiloGeometry
from silo_flow.particles import ParticleField, SimulationMode, sample_initial_state
from silo_flow.plant import SiloPlant, SiloUnit
