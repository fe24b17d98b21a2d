"""Reframing engine configuration."""

DEFAULT_PRESET = "instagram-reel"

# Target resolution
MAX_HOLD_FRAMES = 30  # Frames to hold the last known target across gaps
AUTO_NEARBY_FRACTION = 0.3  # Auto mode joins boxes within this fraction of min(frame W, H)

# Camera path
MAX_DAMPING = 0.95  # smoothness=1 keeps 5% of each new raw sample
DEFAULT_MAX_ZOOM = 4.0
BOUNDS_TOLERANCE_PX = 1e-6
