from dataclasses import dataclass, field

from silo_flow.geometry import SiloGeometry


MAX_LAYERS = 5                                          #most lots a single silo can hold
MAX_SILOS = 3                                           #silos placed side by side in the plant

DEFAULT_FLOW_SPEED = 0.45                               #flow speed the plant starts with and returns to on reset
MIN_FLOW_SPEED = 0.3                                    #flow speed slider range
MAX_FLOW_SPEED = 1.5
FLOW_SPEED_STEP = 0.05

FPS = 60                                                #frames per second of the viewer (and the fixed headless timestep)
SAMPLE_INTERVAL = 0.4                                   #seconds between flow rate samples

SILO_OFFSETS = ((-5.0, 0.0, 0.0), (0.0, 0.0, 0.0), (5.0, 0.0, 0.0))     #where each silo stands in the plant

#lot colors, one palette per silo, no color shared between silos
SILO_PALETTES = (
    ("#FFD700", "#FF6B35", "#4ECDC4", "#A3E635", "#F5F5DC"),    #gold, orange, teal, lime, beige
    ("#F38181", "#9B59B6", "#3498DB", "#1ABC9C", "#D35400"),    #pink, purple, blue, turquoise, pumpkin
    ("#2ECC71", "#E74C3C", "#F39C12", "#95A5A6", "#8E44AD"),    #green, coral, amber, grey, violet
)


@dataclass(frozen=True)
class SiloConfig:
    """Construction-time description of one silo instance and how it is filled."""

    geometry: SiloGeometry = field(default_factory=SiloGeometry)
    layers: int = 3                                     #number of stacked lots
    particles_per_layer: int = 5000
    layer_height: float = 1.2                           #height of each lot's band, stacked up from the cone bottom
    mix_ratio: float = 0.15                             #fraction of layer_height a particle may stray out of its band
    seed: int = 0                                       #seed for the initial fill

    def __post_init__(self):
        if not 1 <= self.layers <= MAX_LAYERS:
            raise ValueError(f"layers must be between 1 and {MAX_LAYERS}, got {self.layers}")
        if self.particles_per_layer < 1:
            raise ValueError("particles_per_layer must be at least 1")
        if self.layer_height <= 0:
            raise ValueError("layer_height must be positive")
        if not 0 <= self.mix_ratio < 1:
            raise ValueError("mix_ratio must be in [0, 1)")

    @classmethod
    def stacked(cls, layers, particles_per_layer=5000, fill_height=3.6, **kwargs):
        #split a fixed fill height evenly between the lots
        return cls(layers=layers, particles_per_layer=particles_per_layer, layer_height=fill_height / max(layers, 1), **kwargs)

    @property
    def n_particles(self):
        return self.layers * self.particles_per_layer


#empirically tuned constants for the discharge animation
@dataclass(frozen=True)
class FlowTuning:
    gravity: float = 9.8                                #base downward acceleration, scaled by flow speed
    core_scale: float = 2.0                             #active funnel radius at the outlet, in outlet radii
    funnel_spread: float = 0.1                          #growth of the active funnel radius per unit height above the outlet
    band_scale: float = 1.5                             #outer edge of the middle band, in active funnel radii
    core_retain: float = 1.0                            #fraction of velocity kept per frame inside the funnel
    band_retain: float = 0.6                            #fraction kept in the middle band
    outer_retain: float = 0.25                          #fraction kept near the walls
    inward_pull: float = 1.5                            #strength of the pull towards the axis inside the cone
    outlet_bias: float = 1.0                            #extra pull close to the outlet (1.0 doubles it at the apex)
    eps: float = 1e-6                                   #radial distances below this are treated as on-axis

    def __post_init__(self):
        for name in ("core_retain", "band_retain", "outer_retain"):
            if not 0 <= getattr(self, name) <= 1:
                raise ValueError(f"{name} must be in [0, 1]")
        if self.core_scale <= 0 or self.band_scale < 1:
            raise ValueError("core_scale must be positive and band_scale at least 1")
        if self.eps <= 0:
            raise ValueError("eps must be positive")


def hex_to_rgb(color):
    #"#RRGGBB" -> (r, g, b) floats in [0, 1], the form the renderer takes
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"expected a #RRGGBB color, got {color!r}")
    try:
        return tuple(int(value[i:i + 2], 16) / 255 for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"expected a #RRGGBB color, got {color!r}") from None
