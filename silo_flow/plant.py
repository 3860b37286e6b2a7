import logging
from dataclasses import dataclass, replace

import numpy as np

from silo_flow.config import (
    DEFAULT_FLOW_SPEED,
    MAX_FLOW_SPEED,
    MAX_SILOS,
    MIN_FLOW_SPEED,
    SILO_OFFSETS,
    SILO_PALETTES,
    FlowTuning,
    SiloConfig,
    hex_to_rgb,
)
from silo_flow.particles import ParticleField, SimulationMode


logger = logging.getLogger(__name__)


@dataclass
class SiloUnit:
    field: ParticleField
    colors: list            #one "#RRGGBB" lot color per layer

    def layer_colors_rgb(self):
        return [hex_to_rgb(c) for c in self.colors]


class SiloPlant:
    """Row of silos sharing one set of controls.

    The plant owns the mode, the flow speed and the lot colors, and drives every
    silo's particle field once per frame. When the first silo has emptied, the
    plant falls back to idle and calls ``on_discharge_complete``.
    """

    def __init__(self, silos=MAX_SILOS, config=None, tuning=None, on_discharge_complete=None):
        if not 1 <= silos <= MAX_SILOS:
            raise ValueError(f"silos must be between 1 and {MAX_SILOS}, got {silos}")
        config = config if config is not None else SiloConfig()
        tuning = tuning if tuning is not None else FlowTuning()

        self.mode = SimulationMode.IDLE
        self.flow_speed = DEFAULT_FLOW_SPEED
        self.on_discharge_complete = on_discharge_complete
        self.units = []
        for s in range(silos):
            #each silo gets its own fill so the three don't look identical
            silo_config = replace(config, seed=config.seed + s)
            field = ParticleField(silo_config, tuning, origin=SILO_OFFSETS[s])
            self.units.append(SiloUnit(field, list(SILO_PALETTES[s][:config.layers])))
        logger.info("plant ready: %d silos, %d particles each", silos, config.n_particles)

    def set_mode(self, mode):
        self.mode = SimulationMode(mode)

    def toggle_discharge(self):
        if self.mode is SimulationMode.DISCHARGING:
            self.mode = SimulationMode.IDLE
        else:
            self.mode = SimulationMode.DISCHARGING
        return self.mode

    def set_flow_speed(self, flow_speed):
        self.flow_speed = float(np.clip(flow_speed, MIN_FLOW_SPEED, MAX_FLOW_SPEED))
        return self.flow_speed

    def reset(self):
        self.mode = SimulationMode.IDLE
        self.flow_speed = DEFAULT_FLOW_SPEED
        for unit in self.units:
            unit.field.reset()
        logger.info("plant reset")

    def advance(self, dt):
        for unit in self.units:
            unit.field.advance(dt, self.mode, self.flow_speed)

        if self.mode is SimulationMode.DISCHARGING and self.units[0].field.count_exited() == self.units[0].field.n:
            self.mode = SimulationMode.IDLE
            logger.info("discharge complete")
            if self.on_discharge_complete is not None:
                self.on_discharge_complete()

    #lots are numbered across the whole plant: silo 0 holds lots 0..layers-1, silo 1 the next ones, ...
    @property
    def lot_colors(self):
        return [c for unit in self.units for c in unit.colors]

    def set_lot_color(self, index, color):
        hex_to_rgb(color)
        layers = len(self.units[0].colors)
        if not 0 <= index < layers * len(self.units):
            raise IndexError(f"lot {index} out of range (plant has {layers * len(self.units)} lots)")
        self.units[index // layers].colors[index % layers] = color

    def exited_counts(self):
        return [unit.field.count_exited() for unit in self.units]

    def discharged_fractions(self):
        return [unit.field.discharged_fraction() for unit in self.units]
