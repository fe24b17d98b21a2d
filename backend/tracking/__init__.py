"""Multi-subject tracking: motion model, association and track lifecycle."""
