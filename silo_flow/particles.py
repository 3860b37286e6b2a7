import logging
from enum import Enum

import numpy as np
import taichi as ti

from silo_flow.config import FlowTuning, SiloConfig
from silo_flow.geometry import frustum_radius


logger = logging.getLogger(__name__)


class SimulationMode(str, Enum):
    IDLE = "idle"
    DISCHARGING = "discharging"


def sample_initial_state(config, rng):
    """Fill a silo with ``config.layers`` soft-edged bands of particles.

    Returns ``(positions, layer_ids)``, shapes ``(N, 3)`` and ``(N,)``, ordered
    layer-major so that particle ``l * particles_per_layer + i`` is the i-th
    particle of layer ``l``.
    """
    geometry = config.geometry
    ppl = config.particles_per_layer
    layer_ids = np.repeat(np.arange(config.layers), ppl)

    #height: uniform inside the layer's band, nudged across the band edges so the lots blend
    y = geometry.cone_bottom + (layer_ids + rng.random(layer_ids.size)) * config.layer_height
    y += rng.uniform(-1.0, 1.0, layer_ids.size) * config.layer_height * config.mix_ratio
    y = np.clip(y, geometry.cone_bottom, geometry.cylinder_height)

    #horizontal: uniform over the disk that fits at that height (sqrt keeps the areal density even)
    r_max = geometry.max_radius_at(y) - geometry.wall_margin
    r = r_max * np.sqrt(rng.random(layer_ids.size))
    theta = 2 * np.pi * rng.random(layer_ids.size)

    positions = np.stack([r * np.cos(theta), y, r * np.sin(theta)], axis=1)
    return positions, layer_ids


@ti.data_oriented
class ParticleField:
    """Particles of one silo instance, advanced once per frame.

    State lives in Taichi fields (one entry per particle). ``advance`` runs the
    whole update as a single parallel kernel and then refreshes one position
    buffer per layer for the renderer; slot ``j`` of layer ``l`` always holds
    particle ``l * particles_per_layer + j``.
    """

    def __init__(self, config=None, tuning=None, origin=(0.0, 0.0, 0.0), initial_positions=None):
        self.config = config if config is not None else SiloConfig()
        self.tuning = tuning if tuning is not None else FlowTuning()
        self.origin = tuple(float(c) for c in origin)

        geometry = self.config.geometry
        self.geometry = geometry
        self.n = self.config.n_particles
        self.layers = self.config.layers
        self.particles_per_layer = self.config.particles_per_layer

        #constants the kernels read
        self.silo_radius = float(geometry.silo_radius)
        self.cone_height = float(geometry.cone_height)
        self.cone_bottom = float(geometry.cone_bottom)
        self.outlet_radius = float(geometry.outlet_radius)
        self.outlet_exit_y = float(geometry.outlet_exit_y)
        self.kill_y = float(geometry.kill_y)
        self.sentinel_y = float(geometry.sentinel_y)
        self.wall_margin = float(geometry.wall_margin)
        self.origin_x, self.origin_y, self.origin_z = self.origin

        tuning = self.tuning
        self.gravity = float(tuning.gravity)
        self.core_scale = float(tuning.core_scale)
        self.funnel_spread = float(tuning.funnel_spread)
        self.band_scale = float(tuning.band_scale)
        self.core_retain = float(tuning.core_retain)
        self.band_retain = float(tuning.band_retain)
        self.outer_retain = float(tuning.outer_retain)
        self.inward_pull = float(tuning.inward_pull)
        self.outlet_bias = float(tuning.outlet_bias)
        self.eps = float(tuning.eps)

        if initial_positions is None:
            initial_positions, _ = sample_initial_state(self.config, np.random.default_rng(self.config.seed))
        initial_positions = np.asarray(initial_positions, dtype=np.float32)
        if initial_positions.shape != (self.n, 3):
            raise ValueError(
                f"expected initial positions of shape ({self.n}, 3) for {self.layers} layers of "
                f"{self.particles_per_layer} particles, got {initial_positions.shape}"
            )

        #taichi fields
        self.positions = ti.Vector.field(3, dtype=ti.f32, shape=self.n)             #current particle positions
        self.velocities = ti.Vector.field(3, dtype=ti.f32, shape=self.n)            #current particle velocities
        self.initial_positions = ti.Vector.field(3, dtype=ti.f32, shape=self.n)     #positions restored on reset (never written after this)
        self.layer_ids = ti.field(dtype=ti.i32, shape=self.n)                       #lot each particle belongs to
        self.layer_buffers = [                                                      #per-layer world positions handed to the renderer
            ti.Vector.field(3, dtype=ti.f32, shape=self.particles_per_layer) for _ in range(self.layers)
        ]

        self.initial_positions.from_numpy(initial_positions)
        self.layer_ids.from_numpy(np.repeat(np.arange(self.layers, dtype=np.int32), self.particles_per_layer))
        self.reset()
        logger.debug("created particle field: %d layers x %d particles at %s", self.layers, self.particles_per_layer, self.origin)

    @classmethod
    def from_positions(cls, positions, config=None, **kwargs):
        #layer-major positions, len(positions) == layers * particles_per_layer
        return cls(config=config, initial_positions=positions, **kwargs)

    def reset(self):
        self._reset()
        self._write_layer_buffers()

    def advance(self, dt, mode=SimulationMode.DISCHARGING, flow_speed=1.0):
        discharging = SimulationMode(mode) is SimulationMode.DISCHARGING
        self._step(float(dt), float(flow_speed), int(discharging))
        self._write_layer_buffers()

    @ti.kernel
    def _reset(self):
        for i in range(self.n):
            self.positions[i] = self.initial_positions[i]
            self.velocities[i] = ti.Vector([0.0, 0.0, 0.0])

    @ti.kernel
    def _step(self, dt: ti.f32, flow_speed: ti.f32, discharging: ti.i32):
        for i in range(self.n):
            pos = self.positions[i]
            vel = self.velocities[i]

            if discharging == 0 and pos[1] >= self.outlet_exit_y:
                #at rest inside the body
                vel = ti.Vector([0.0, 0.0, 0.0])
            else:
                #gravity, stronger at higher flow speeds
                vel[1] -= self.gravity * flow_speed * dt

                if pos[1] < self.outlet_exit_y:
                    #out of the silo: straight down, recycled once it reaches the kill height
                    vel[0] = 0.0
                    vel[2] = 0.0
                    pos += vel * dt * flow_speed
                    if pos[1] < self.kill_y:
                        pos = ti.Vector([0.0, self.sentinel_y, 0.0])
                        vel = ti.Vector([0.0, 0.0, 0.0])
                else:
                    r = ti.sqrt(pos[0] * pos[0] + pos[2] * pos[2])

                    #funnel flow: the column above the outlet moves freely, particles near the wall lag behind
                    active_radius = (self.outlet_radius * self.core_scale
                                     + ti.max(pos[1] - self.cone_bottom, 0.0) * self.funnel_spread)
                    retain = self.outer_retain
                    if r < active_radius:
                        retain = self.core_retain
                    elif r < active_radius * self.band_scale:
                        retain = self.band_retain
                    vel *= retain

                    #inside the cone, pull towards the axis, harder near the outlet
                    if pos[1] < 0.0 and r > self.eps:
                        t = ti.min(ti.max((pos[1] - self.cone_bottom) / self.cone_height, 0.0), 1.0)
                        pull = self.inward_pull * flow_speed * (1.0 + self.outlet_bias * (1.0 - t))
                        vel[0] -= pos[0] / r * pull * dt
                        vel[2] -= pos[2] / r * pull * dt

                    pos += vel * dt * flow_speed

                    #wall: put the particle back on the boundary and lose half the sideways speed
                    limit = frustum_radius(pos[1], self.silo_radius, self.outlet_radius, self.cone_height) - self.wall_margin
                    r_new = ti.sqrt(pos[0] * pos[0] + pos[2] * pos[2])
                    if r_new > limit and r_new > self.eps:
                        scale = limit / r_new
                        pos[0] *= scale
                        pos[2] *= scale
                        vel[0] *= 0.5
                        vel[2] *= 0.5

            self.positions[i] = pos
            self.velocities[i] = vel

    @ti.kernel
    def _write_layer_buffers(self):
        origin = ti.Vector([self.origin_x, self.origin_y, self.origin_z])
        for l in ti.static(range(self.layers)):
            for j in range(self.particles_per_layer):
                self.layer_buffers[l][j] = origin + self.positions[l * self.particles_per_layer + j]

    #number of particles that have left the silo body (recycled ones included)
    @ti.kernel
    def count_exited(self) -> ti.i32:
        count = 0
        for i in range(self.n):
            if self.positions[i][1] < self.outlet_exit_y:
                count += 1
        return count

    @ti.kernel
    def count_recycled(self) -> ti.i32:
        count = 0
        for i in range(self.n):
            if self.positions[i][1] < self.kill_y:
                count += 1
        return count

    def discharged_fraction(self):
        return self.count_exited() / self.n

    def layer_positions(self, layer):
        return self.layer_buffers[layer].to_numpy()

    def positions_numpy(self):
        return self.positions.to_numpy()

    def velocities_numpy(self):
        return self.velocities.to_numpy()

    def initial_positions_numpy(self):
        return self.initial_positions.to_numpy()

    def layer_ids_numpy(self):
        return self.layer_ids.to_numpy()
