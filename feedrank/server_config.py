"""Feed engine configuration.

Values here are static constants. Environment variables only select paths
and the logging view mode; ranking weights are never read from the
environment.
"""

import os
from pathlib import Path

# Profile database location (sqlite). The anonymous viewer shares the row
# stored under DEFAULT_PROFILE_KEY.
DEFAULT_PROFILE_DB_PATH = Path(
    os.environ.get("FEEDRANK_PROFILE_DB", "feedrank-profiles.db")
)
DEFAULT_PROFILE_KEY = "__default__"

# Log view mode for the JSON formatter: "focused" or "verbose".
DEFAULT_FEED_LOG_PROFILE = os.environ.get("FEEDRANK_LOG_PROFILE", "focused")

# Interest profile accumulation.
# Keep the newest interactions only; older ones are dropped from the tail.
MAX_RECENT_INTERACTIONS = 100
# Additive score per interaction kind.
INTERACTION_WEIGHTS = {
    "view": 1.0,
    "like": 3.0,
    "comment": 5.0,
    "subscribe": 10.0,
}
# Tags are a weaker signal than category/channel.
TAG_WEIGHT_FACTOR = 0.5
# Channel affinity counts double in relevance scoring.
CHANNEL_AFFINITY_FACTOR = 2.0

# Default sizes for top-interest queries.
TOP_CATEGORIES_LIMIT = 5
TOP_CHANNELS_LIMIT = 10
TOP_TAGS_LIMIT = 20

# Trending score (daily-discrete decay).
TRENDING_RECENCY_WINDOW_DAYS = 7.0
TRENDING_RECENCY_BONUS = 100.0
TRENDING_DAILY_DECAY = 0.9
TRENDING_ENGAGEMENT = {"views": 1.0, "likes": 3.0, "comments": 5.0}

# Regional score is binary.
REGIONAL_MATCH_SCORE = 100.0

# Item rank (hourly-continuous decay, used for absolute popularity ordering).
ITEM_RANK_DECAY_HOURS = 168.0
ITEM_RANK_FRESH_HOURS = 24.0
ITEM_RANK_FRESH_BOOST = 1.5
ITEM_RANK_CATEGORY_BOOSTS = {
    "Entertainment": 1.2,
    "Music": 1.3,
    "Gaming": 1.1,
    "Comedy": 1.2,
    "Education": 1.1,
    "general": 1.0,
}

# Feed pipeline configuration.
# Notes:
# - presets hold the four blend weights; they need not sum to 1, the composer normalizes.
# - perturbation reorders only the top fraction of the sorted feed.
# - related holds the content-based similarity bonuses.
FEED_PIPELINE = {
    "default_preset": "balanced",
    "presets": {
        # Default mix.
        "balanced": {
            "interest_weight": 0.4,
            "trending_weight": 0.3,
            "discovery_weight": 0.2,
            "regional_weight": 0.1,
        },
        # Focus on the viewer's accumulated interests.
        "personalized": {
            "interest_weight": 0.6,
            "trending_weight": 0.2,
            "discovery_weight": 0.1,
            "regional_weight": 0.1,
        },
        # What is popular right now.
        "trending": {
            "interest_weight": 0.2,
            "trending_weight": 0.6,
            "discovery_weight": 0.1,
            "regional_weight": 0.1,
        },
        # Explore content outside established interests.
        "discovery": {
            "interest_weight": 0.2,
            "trending_weight": 0.2,
            "discovery_weight": 0.5,
            "regional_weight": 0.1,
        },
        # Prioritize content from the viewer's region.
        "regional": {
            "interest_weight": 0.3,
            "trending_weight": 0.2,
            "discovery_weight": 0.1,
            "regional_weight": 0.4,
        },
    },
    "perturbation": {
        # Share of the sorted feed that gets shuffled and jittered (ceil applied).
        "top_fraction": 0.3,
        # Jitter is drawn from [-jitter, jitter] and added to the total score.
        "jitter": 10.0,
        # Discovery term is drawn from [0, discovery_max).
        "discovery_max": 100.0,
    },
    "related": {
        "limit": 12,
        "category_match": 10.0,
        "tag_overlap": 3.0,
        "title_overlap": 2.0,
        "title_min_token_length": 4,
        "duration_match": 2.0,
        "duration_window_seconds": 300.0,
        "popularity_factor": 0.5,
        "recent_bonus": 2.0,
        "recent_days": 7.0,
    },
}
