"""
Setup script for cf-planner.

cf-planner tracks a learner's progress across a roadmap of Codeforces
topics. It serves three roles:

1. Mastery Engine - Turns judge history into per-topic current/peak mastery
2. Recommender - Picks the next problem just above current mastery
3. Operator CLI - Sync, stats and recommendations from the terminal

The 'cfp' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="cf-planner",
    version="1.0.0",
    description="Topic mastery scoring and problem recommendations for Codeforces",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="cf-planner",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0,<2.1",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cfp=cfplanner.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="codeforces competitive-programming mastery recommendation cli",
)
