"""
Built-in defaults for mesh_surgery.

Values here are overridden at runtime by project_config.apply_config_to_globals().
Components read them as default arguments, so callers can always pass
explicit values instead.
"""

# ---------------------------------------------------------------------------
# Bounding volume tree
# ---------------------------------------------------------------------------

BVH_MAX_LEAF_SIZE = 20
BVH_MAX_DEPTH = 20  # advisory only, the tree does not rebalance to honor it

# ---------------------------------------------------------------------------
# Nearest-triangle search (expanding sphere)
# ---------------------------------------------------------------------------

SEARCH_START_RADIUS = 0.1
SEARCH_MAX_RADIUS = 1000.0
SEARCH_GROWTH = 2.0

# Triangles per worker chunk when building the spatial index in parallel
INDEX_BUILD_CHUNK = 4096

# ---------------------------------------------------------------------------
# Projection / numerics
# ---------------------------------------------------------------------------

PROJECTION_EPS = 1e-6
DEGENERATE_EPS = 1e-8
DEDUP_TOLERANCE = 1e-6

# ---------------------------------------------------------------------------
# Hole filling: strategy thresholds by boundary edge count
# ---------------------------------------------------------------------------

CENTROID_FAN_MAX_EDGES = 6
EARCUT_MAX_EDGES = 50

# ---------------------------------------------------------------------------
# Welding
# ---------------------------------------------------------------------------

WELD_TOLERANCE = 1e-6
