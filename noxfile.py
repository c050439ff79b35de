"""Nox automation configuration for pagerlink.

Provides automated testing, linting, formatting, and build tasks.
"""

import nox

# Default sessions to run
nox.options.sessions = ["lint", "tests"]
nox.options.reuse_existing_virtualenvs = True


@nox.session(python=["3.8", "3.9", "3.10", "3.11", "3.12"])
def tests(session):
    """Run the test suite."""
    session.install("-e", ".[dev]")
    session.run("pytest", *session.posargs)


@nox.session(python="3.10")
def coverage(session):
    """Run tests with coverage reporting."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        "--cov=pagerlink",
        "--cov-report=term-missing",
        "--cov-report=xml",
        *session.posargs
    )


@nox.session(python="3.10")
def lint(session):
    """Run linters (flake8 and mypy)."""
    session.install("-e", ".[dev]")
    session.run("flake8", "pagerlink", "tests")
    session.run("mypy", "pagerlink", "--ignore-missing-imports")


@nox.session(python="3.10")
def format(session):
    """Format code with black."""
    session.install("black")
    session.run("black", "pagerlink", "tests", "main.py", "noxfile.py")


@nox.session(python="3.10")
def tests_unit(session):
    """Run unit tests only."""
    session.install("-e", ".[dev]")
    session.run("pytest", "tests/unit", "-v", *session.posargs)


@nox.session(python="3.10")
def tests_integration(session):
    """Run integration tests only."""
    session.install("-e", ".[dev]")
    session.run("pytest", "tests/integration", "-v", *session.posargs)


@nox.session(python="3.10")
def tests_codec(session):
    """Run POCSAG encoder tests only."""
    session.install("-e", ".[dev]")
    session.run("pytest", "tests/unit/test_pocsag.py", "-v", *session.posargs)


@nox.session(python="3.10")
def tests_protocol(session):
    """Run AT protocol and transfer tests only."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        "tests/unit/test_response_parser.py",
        "tests/unit/test_at_executor.py",
        "tests/unit/test_transfer_engine.py",
        "-v",
        *session.posargs
    )
