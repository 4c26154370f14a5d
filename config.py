"""Central configuration for all tunable constants.

Every numeric constant used across the channel engine lives here.
Modules import what they need instead of embedding magic numbers.

Organisation follows the pipeline order:
  CLI defaults → Regression / channels → Volume profile → Touch alignment
  → Grid search → Multi-channel detection → Auxiliary indicators
"""

# ──────────────────────────────────────────────────────────────────────
# CLI / main.py defaults
# ──────────────────────────────────────────────────────────────────────

# Chart period key used for the lookup tables below.
DEFAULT_CHART_PERIOD = "3M"

# Static channel defaults (dashboard "trend channel" panel).
DEFAULT_CHANNEL_LOOKBACK = 100
DEFAULT_STD_MULTIPLIER = 2.0

# Number of colored zones between channel bounds.  K zones → K−1 interior
# band levels.  10 gives decile-like volume zones.
DEFAULT_BAND_COUNT = 10

# Volume-at-price histogram resolution.
DEFAULT_VOLUME_BINS = 70

# Confluence: a bound is "near" a profile node when within this fraction
# of the bound's own price.  0.02 = 2%.
DEFAULT_PROXIMITY_THRESHOLD = 0.02

# SMA period for the moving-average overlay.
DEFAULT_SMA_PERIOD = 20

# Coarse volume bar slots (background volume zones).
DEFAULT_VOLUME_SLOTS = 20

# ──────────────────────────────────────────────────────────────────────
# Chart-period lookup tables
# ──────────────────────────────────────────────────────────────────────

# Trading days represented by each chart period.
PERIOD_DAYS = {
    "1D": 1,
    "7D": 7,
    "1M": 30,
    "3M": 90,
    "6M": 180,
    "1Y": 252,
    "3Y": 756,
    "5Y": 1260,
}
DEFAULT_PERIOD_DAYS = 30

# Short window N for RVI (long window = RVI_LONG_FACTOR × N) and for the
# VSPY return horizon.
RVI_N = {
    "1D": 1,
    "7D": 2,
    "1M": 3,
    "3M": 5,
    "6M": 6,
    "1Y": 7,
    "3Y": 10,
    "5Y": 20,
}
DEFAULT_RVI_N = 5
RVI_LONG_FACTOR = 5

# SMA used to smooth residuals before turning-point (touch) detection.
# Longer charts need heavier smoothing to ignore day-to-day noise.
TOUCH_SMOOTHING_SMA = {
    "7D": 1,
    "1M": 3,
    "3M": 5,
    "6M": 10,
    "1Y": 14,
    "3Y": 20,
    "5Y": 30,
}
DEFAULT_TOUCH_SMOOTHING_SMA = 3

# ──────────────────────────────────────────────────────────────────────
# Regression / channel builders  (regression.py, channel_builder.py)
# ──────────────────────────────────────────────────────────────────────

# Accepted price sources: close, (high+low)/2, (open+high+low+close)/4.
PRICE_SOURCES = ("close", "hl2", "ohlc4")
DEFAULT_PRICE_SOURCE = "close"

# ──────────────────────────────────────────────────────────────────────
# Touch-alignment optimizer  (touch_alignment.py)
# ──────────────────────────────────────────────────────────────────────

# A bound only counts as touched when the extreme turning point falls in
# the first or last BOUNDARY_WINDOW_PCT of the window.
BOUNDARY_WINDOW_PCT = 0.08

# Relative tolerance (× std-dev) for "residual equals the extreme".
TOUCH_TOLERANCE_FACTOR = 1e-6

# Absolute tolerance used when the std-dev is zero.
ZERO_STD_TOLERANCE = 1e-6

# ──────────────────────────────────────────────────────────────────────
# Grid search "Find Optimal"  (grid_search.py)
# ──────────────────────────────────────────────────────────────────────

# Smallest lookback considered by the phase-1 grid.
GRID_MIN_LOOKBACK = 20

# end_offset ∈ [0, N // GRID_END_OFFSET_DIVISOR].
GRID_END_OFFSET_DIVISOR = 5

# A point "crosses" when within this fraction of the centre line.
GRID_CROSS_TOLERANCE_PCT = 0.01

# Upper bound on phase-1 (lookback, end_offset) evaluations.  When the full
# grid is larger, both axes are sampled with a common step
# ceil(sqrt(grid_size / budget)).
GRID_EVALUATION_BUDGET = 20_000

# The secondary search covers the most recent fraction of the series.
RECENT_FRACTION = 0.25
RECENT_MIN_POINTS = 20

# ──────────────────────────────────────────────────────────────────────
# Multi-channel detector  (channel_detector.py)
# ──────────────────────────────────────────────────────────────────────

DEFAULT_MIN_RATIO = 0.05
DEFAULT_MAX_RATIO = 0.5
DEFAULT_MAX_CHANNELS = 10

# Channels never shorter than this many points.
DETECTOR_MIN_POINTS = 10

# Sampling resolution: ~LOOKBACK_SAMPLES lookbacks × ~POSITION_SAMPLES
# start positions per range.
LOOKBACK_SAMPLES = 20
POSITION_SAMPLES = 10

# Skip a window when more than this fraction is already claimed.
MAX_CLAIMED_FRACTION = 0.5

# Multiplier sweep (inclusive).
MULTIPLIER_MIN = 1.0
MULTIPLIER_MAX = 4.0
MULTIPLIER_STEP = 0.5

# Touch / coverage tolerance as a fraction of the std-dev.
DETECTOR_TOUCH_TOLERANCE = 0.1

# Centre proximity: share of points within CENTER_BAND_PCT of |centre|.
# Configurations below MIN_CENTER_PROXIMITY are rejected (anti-overfit).
CENTER_BAND_PCT = 0.20
MIN_CENTER_PROXIMITY = 0.70

# Touch bonus for {no touch, one bound, both bounds}.
TOUCH_BONUS_NONE = 1.0
TOUCH_BONUS_ONE = 1.2
TOUCH_BONUS_BOTH = 1.5

# widthPenalty = 1 / (1 + multiplier / WIDTH_PENALTY_SCALE).
WIDTH_PENALTY_SCALE = 4.0

# Boundary-fit guard: mean |residual| of the first/last
# BOUNDARY_FIT_PCT (min BOUNDARY_FIT_MIN_POINTS) must stay within
# BOUNDARY_FIT_RATIO × the window's mean |residual|.
BOUNDARY_FIT_PCT = 0.10
BOUNDARY_FIT_MIN_POINTS = 3
BOUNDARY_FIT_RATIO = 1.5

# Stop searching once the best channel scores below this.
MIN_CHANNEL_SCORE = 0.15

# Only the central part of an accepted channel is claimed; each edge keeps
# OVERLAP_BUFFER_PCT free for neighbours.
OVERLAP_BUFFER_PCT = 0.20

# A leftover range survives if it keeps this share of the minimum window.
MIN_RANGE_FRACTION = 0.8

# A window whose residual std-dev is below EXACT_FIT_EPS × mean |price| is
# treated as an exact line (std-dev 0, nothing to touch).
EXACT_FIT_EPS = 1e-9

# ──────────────────────────────────────────────────────────────────────
# Auxiliary indicators  (indicators.py)
# ──────────────────────────────────────────────────────────────────────

# VSPY ratio clamp.
VSPY_MIN = -5.0
VSPY_MAX = 10.0

# Benchmark change treated as flat below this magnitude.
VSPY_FLAT_BENCHMARK = 0.0001

# Own change above/below ±VSPY_MATERIAL_MOVE against a flat benchmark maps
# to VSPY_OUTPERFORM / VSPY_UNDERPERFORM.
VSPY_MATERIAL_MOVE = 0.01
VSPY_OUTPERFORM = 3.0
VSPY_UNDERPERFORM = 0.3

# Moving-average window used by VSPY.
VSPY_MA_WINDOW = 3

# SMA period sweep bounds (inclusive).
SMA_SWEEP_MIN = 5
SMA_SWEEP_MAX = 100
