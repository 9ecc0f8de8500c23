"""cf-planner: topic mastery scoring and problem recommendation for Codeforces."""

__version__ = "1.0.0"
