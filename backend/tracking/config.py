"""Tracker and motion model configuration."""

# Motion model noise, relative to box height
STD_WEIGHT_POSITION = 1.0 / 20
STD_WEIGHT_VELOCITY = 1.0 / 160
ASPECT_STD = 1e-2
ASPECT_VELOCITY_STD = 1e-5
MEASUREMENT_ASPECT_STD = 1e-1
MIN_HEIGHT = 1e-3  # Floor for heights used in noise terms and aspect ratios

# Association settings
MATCH_THRESH = 0.7  # Pairs with cost >= 0.7 (IoU below 0.3) are rejected
FUSE_SCORE = False
ASSIGNMENT_METHOD = "hungarian"  # "hungarian" or "greedy"
ASSIGNMENT_METHODS = ("hungarian", "greedy")
INFEASIBLE_COST = 1e6
TIE_BREAK_EPS = 1e-9  # Per-row cost bias so equal-cost ties go to the lower track index

# Lifecycle settings
MAX_FRAMES_LOST = 30  # Frames a lost track stays eligible for rematch
