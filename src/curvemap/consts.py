"""Central module containing default values and numerical tolerances."""

from __future__ import annotations

###############################################################################
# Shape parameter defaults
###############################################################################

DEFAULT_CURVINESS: float = 0.5  # 0 = linear, 1 = Catmull-Rom
DEFAULT_SOFTNESS: float = 0.0  # 0 = uniform, 0.5 = centripetal, 1 = chordal

###############################################################################
# Arc length strategies
###############################################################################

DEFAULT_SUB_DIVISIONS: int = 300  # polyline samples of the segmented mapper

DEFAULT_QUADRATURE_ORDER: int = 24  # Gauss-Legendre order of the numerical mapper
MIN_QUADRATURE_ORDER: int = 5
MAX_QUADRATURE_ORDER: int = 29
DEFAULT_INVERSE_SAMPLES: int = 21  # length/time samples per segment

# Below this curviness the reciprocal speed is clamped to [-1, 1]
NEAR_LINEAR_CURVINESS: float = 0.05

###############################################################################
# Closest point search
###############################################################################

DEFAULT_SEARCH_THRESHOLD: float = 1.0e-5
DEFAULT_SEARCH_STEPS: int = 200  # initial probe step is 1 / DEFAULT_SEARCH_STEPS
SAMPLES_PER_SEGMENT: int = 10  # default lookup table density

###############################################################################
# Tolerances
###############################################################################

# Leading polynomial coefficient treated as zero (degrade cubic -> quadratic -> linear)
ZERO_COEFFICIENT_EPS: float = 2.0**-42
# Discriminant treated as zero (roots coincide)
EQUAL_ROOTS_EPS: float = 2.0**-42
# Depressed cubic p or q treated as zero
DEPRESSED_TERM_EPS: float = 2.0**-42
# Knot gaps at or below this value are coincident knots
COINCIDENT_KNOT_EPS: float = 0.0
# Slack around [0, 1] when accepting segment-local roots
INTERSECTION_EPS: float = 2.0**-20
