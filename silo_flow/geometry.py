from dataclasses import dataclass

import numpy as np
import taichi as ti


#silo boundary (the silo axis is the y axis, y = 0 is the top of the cone / bottom of the cylinder)
@dataclass(frozen=True)
class SiloGeometry:
    silo_radius: float = 1.2            #radius of the cylindrical body
    cylinder_height: float = 2.5        #height of the top of the body above y = 0
    cone_height: float = 1.5            #height of the conical taper below y = 0
    outlet_radius: float = 0.18         #radius of the opening at the cone's apex
    outlet_exit_drop: float = 0.05      #how far below the cone bottom a particle counts as having left the body
    kill_y: float = -2.9                #particles below this height are recycled (floor of the collection area)
    wall_margin: float = 0.03           #gap kept between particles and the wall
    sentinel_y: float = -1000.0         #height recycled particles are parked at

    def __post_init__(self):
        for name in ("silo_radius", "cylinder_height", "cone_height", "outlet_radius"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.outlet_radius >= self.silo_radius:
            raise ValueError("outlet_radius must be smaller than silo_radius")
        if not 0 <= self.wall_margin < self.outlet_radius:
            raise ValueError("wall_margin must be in [0, outlet_radius)")
        if self.outlet_exit_drop < 0:
            raise ValueError("outlet_exit_drop must not be negative")
        if self.kill_y >= self.outlet_exit_y:
            raise ValueError(f"kill_y ({self.kill_y}) must lie below the outlet exit ({self.outlet_exit_y})")
        if self.sentinel_y >= self.kill_y:
            raise ValueError("sentinel_y must lie below kill_y")

    @property
    def cone_bottom(self):
        return -self.cone_height

    @property
    def outlet_exit_y(self):
        return self.cone_bottom - self.outlet_exit_drop

    def max_radius_at(self, y):
        """Radius of the silo cross-section at height ``y`` (scalar or array).

        Constant above the cone, linear between the outlet and the body radius
        inside it, and held at the outlet radius below the cone bottom.
        """
        y = np.asarray(y, dtype=np.float64)
        t = np.clip((y - self.cone_bottom) / self.cone_height, 0.0, 1.0)
        r = np.where(y >= 0.0, self.silo_radius, self.outlet_radius + (self.silo_radius - self.outlet_radius) * t)
        return float(r) if r.ndim == 0 else r


#kernel-side version of SiloGeometry.max_radius_at
@ti.func
def frustum_radius(y, silo_radius, outlet_radius, cone_height):
    r = silo_radius
    if y < 0.0:
        t = ti.min(ti.max((y + cone_height) / cone_height, 0.0), 1.0)
        r = outlet_radius + (silo_radius - outlet_radius) * t
    return r
