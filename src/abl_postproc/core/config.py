"""
ABL Post-processing Configuration and Constants

This module centralizes field names, statistic layouts and default values
for the planar statistics workflow.
"""

# ============================================================================
# Configuration Block
# ============================================================================

CONFIG_SECTION = "abl_postprocessing"

# ============================================================================
# Transfer Search Defaults
# ============================================================================

DEFAULT_SEARCH_METHOD = "stk_kdtree"
DEFAULT_SEARCH_TOLERANCE = 1.0e-4
DEFAULT_SEARCH_EXPANSION_FACTOR = 1.5

# Methods that locate target points in donor cells before falling back
# to the nearest donor. "nearest" skips cell location entirely.
CELL_SEARCH_METHODS = ("stk_kdtree", "stk_octree")
SEARCH_METHODS = CELL_SEARCH_METHODS + ("nearest",)

# ============================================================================
# Output Defaults
# ============================================================================

DEFAULT_OUTPUT_FREQUENCY = 10
DEFAULT_OUTPUT_FILE_FORMAT = "abl_stats_%s.dat"

# ============================================================================
# Field Names
# ============================================================================

VELOCITY_FIELD = "velocity"
TEMPERATURE_FIELD = "temperature"
SFS_STRESS_FIELD = "sfs_stress"
WALL_UTAU_FIELD = "wall_friction_velocity"

# Number of components per transferred field
FIELD_COMPONENTS = {
    VELOCITY_FIELD: 3,
    TEMPERATURE_FIELD: 1,
    SFS_STRESS_FIELD: 6,
}

# Field families: which fields land on which kind of plane
VELOCITY_FAMILY = "velocity"
TEMPERATURE_FAMILY = "temperature"

FAMILY_FIELDS = {
    VELOCITY_FAMILY: (VELOCITY_FIELD, SFS_STRESS_FIELD, TEMPERATURE_FIELD),
    TEMPERATURE_FAMILY: (TEMPERATURE_FIELD,),
}

# ============================================================================
# Statistic Layouts
# ============================================================================

VELOCITY_COMPONENTS = ("Ux", "Uy", "Uz")

# Symmetric tensor, upper triangle row by row
STRESS_COMPONENTS = ("xx", "xy", "xz", "yy", "yz", "zz")

# <u'u'>, <v'v'>, <w'w'>, <u'v'>, <u'w'>, <v'w'>, <w'^3>, <T'T'>, <w'T'>
VARIANCE_COMPONENTS = ("uu", "vv", "ww", "uv", "uw", "vw", "www", "TT", "wT")
N_VAR_STATS = len(VARIANCE_COMPONENTS)

# ============================================================================
# Friction Velocity
# ============================================================================

UTAU_METHODS = ("field", "log_law")
DEFAULT_UTAU_METHOD = "field"
VON_KARMAN = 0.41
DEFAULT_ROUGHNESS_HEIGHT = 0.1
