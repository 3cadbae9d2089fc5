"""Nox Configuration for txisolate."""
import os
from pathlib import Path
import shutil

import nox
from nox.sessions import Session

src_locations = ["src"]
test_locations = ["tests"]


@nox.session(venv_backend="venv")
def tests(session: Session) -> None:
    """Run the test suite."""
    session.install("uv")
    # Install all dev dependencies, including pytest and the package itself
    session.run("uv", "sync", "--active", "--group", "dev")

    args = session.posargs or test_locations

    session.run(
        "coverage",
        "run",
        "-m",
        "pytest",
        "--junitxml=.test_report.xml",
        *args,
        env={"SQLALCHEMY_WARN_20": "1"}
    )


@nox.session(venv_backend="venv")
def lint(session: Session) -> None:
    """Lint code using various plugins.

    flake8 - a Python library that wraps PyFlakes, pycodestyle and McCabe script.
    flake8-docstrings - extension for flake8 which uses pydocstyle to check docstrings.
    """
    session.install("uv")
    args = session.posargs or src_locations
    session.run("uv", "sync", "--active", "--group", "dev")
    session.run("flake8", *args)


@nox.session(venv_backend="venv")
def format(session):
    session.install("uv")
    args = session.posargs or src_locations + test_locations
    session.run("uv", "sync", "--active", "--group", "dev")
    session.run(
        "autoflake",
        "--in-place",
        "--remove-all-unused-imports",
        "--recursive",
        *args
    )
    session.run("isort", *args)
    session.run("black", *args)


@nox.session(venv_backend="venv")
def typecheck(session: Session) -> None:
    """Type check code."""
    session.install("uv")
    args = session.posargs or src_locations
    session.run("uv", "sync", "--active", "--group", "dev")
    session.run("mypy", "--explicit-package-bases", *args)


@nox.session(venv_backend="venv")
def build(session: Session) -> None:
    session.install("uv")
    session.run("uv", "sync", "--active", "--group", "dev")
    session.run("python", "-m", "build", "--outdir", "dist", ".")


@nox.session(venv_backend="venv")
def clean(session: Session) -> None:
    """Clean up all build artifacts, caches, and local virtual environments."""
    session.log("Removing build artifacts, caches, and .egg-info directories...")
    dirs_to_remove = ["out", "dist", "build", ".eggs", ".pytest_cache", ".mypy_cache"]
    for egg_info_path in Path(".").rglob("*.egg-info"):
        if egg_info_path.is_dir():
            dirs_to_remove.append(str(egg_info_path))

    for path_str in sorted(set(dirs_to_remove)):
        path_obj = Path(path_str)
        if path_obj.is_dir():
            session.log(f"Removing directory: {path_obj}")
            shutil.rmtree(path_obj, ignore_errors=True)

    for file_str in [".test_report.xml", ".coverage"]:
        if os.path.isfile(file_str):
            session.log(f"Removing file: {file_str}")
            os.remove(file_str)

    session.log("Clean-up finished.")
