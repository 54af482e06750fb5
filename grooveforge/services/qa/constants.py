"""Weights and thresholds for the QA scorer."""

# Sub-score ceilings (sum to 100)
SUBSCORE_WEIGHTS = {
    "structural": 20.0,
    "genre": 25.0,
    "low_end": 20.0,
    "harmonic": 15.0,
    "density": 10.0,
    "intelligence": 10.0,
}

PASS_THRESHOLD = 75.0

# Structural
DRIFT_PENALTY = 1.0
DROP_WITHOUT_KICK_PENALTY = 10.0

# Low end / genre coverage
WARN_SUB_COVERAGE = 0.7
COVERAGE_GENRE_PENALTY = 10.0
COVERAGE_LOW_END_PENALTY = 5.0

# Lead density in the drops
LEAD_CEILING_PENALTY = 5.0
LEAD_FLOOR_PENALTY = 2.0

# Peak-phase rules
PEAK_RULE_PENALTY = 5.0

TEMPO_PENALTY = 2.0

# Harmonic
DISSONANCE_WARN = 0.15
DISSONANCE_CRITICAL = 0.30
DISSONANCE_PENALTY = 5.0

# Density
MISSING_PHASE_CHANNEL_PENALTY = 1.0
OVERCROWDED_NOTES_PER_BAR = 64
OVERCROWDED_PENALTY = 2.0
MIN_ACTIVE_CHANNELS = 3
SPARSE_ARRANGEMENT_PENALTY = 5.0

# Intelligence
FLAT_VELOCITY_PENALTY = 5.0
NO_HUMANIZATION_PENALTY = 5.0
