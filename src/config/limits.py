"""
Centralized Pipeline Limits

Sampling sizes, vocabulary growth and upstream query limits in one place.
Import these in services and Pydantic models.
"""

# =============================================================================
# PROFILE SAMPLING
# =============================================================================

# Narrative profiles merged into one story directive
PROFILES_PER_DIRECTIVE = 3

# Tags kept per narrative bucket after merging
TAGS_PER_BUCKET = 5

# =============================================================================
# VOCABULARY POOL
# =============================================================================

# Share of graduated words added back to the next request size
POOL_GROWTH_FACTOR = 0.85

# =============================================================================
# QLOO QUERIES
# =============================================================================

# Insight tags requested per entity
INSIGHT_TAGS_TAKE = 25

# Entity types searched by the preferences page
SEARCH_ENTITY_TYPES = "urn:entity:movie,urn:entity:tv_show,urn:entity:book"

# Tag types requested for the liked entity itself
ENTITY_INSIGHT_TAG_TYPES = (
    "urn:tag:characteristic:qloo,urn:tag:genre:media,urn:tag:archetype:qloo,"
    "urn:tag:audience:qloo,urn:tag:character:qloo,urn:tag:keyword:qloo,urn:tag:plot:qloo,"
    "urn:tag:style:qloo,urn:tag:subgenre:qloo,urn:tag:theme:qloo"
)

# Tag types requested for cross-domain recommendations
CROSS_ENTITY_INSIGHT_TAG_TYPES = (
    "urn:tag:characteristic:qloo,urn:tag:archetype:qloo,"
    "urn:tag:character:qloo,urn:tag:plot:qloo,urn:tag:style:qloo,"
    "urn:tag:subgenre:qloo"
)

# Cross-domain entity types looked up for each liked entity
CROSS_DOMAIN_ENTITY_TYPES = ("urn:entity:artist", "urn:entity:movie", "urn:entity:destination")

# Entity tags that carry no narrative signal
EXCLUDED_ENTITY_TAG_TYPES = frozenset({
    "urn:tag:streaming_service:media",
    "urn:tag:wikipedia_category:wikidata",
})

# =============================================================================
# USER INPUT LIMITS
# =============================================================================

SEARCH_QUERY_MAX_LENGTH = 200
SEGMENT_MAX_LENGTH = 20000
