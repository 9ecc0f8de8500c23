"""Judge data retrieval."""

from cfplanner.sync.codeforces_client import CodeforcesClient, parse_submission

__all__ = ["CodeforcesClient", "parse_submission"]
