"""Virtual camera path generation from tracked trajectories."""
