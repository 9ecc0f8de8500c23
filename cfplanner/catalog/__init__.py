"""Roadmap and problem catalog seeding."""

from cfplanner.catalog.seed import ROADMAP_EDGES, SeedReport, seed_catalog

__all__ = ["ROADMAP_EDGES", "SeedReport", "seed_catalog"]
