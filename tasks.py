"""
Invoke tasks for ThreadVault project automation.
"""

from pathlib import Path

from invoke import task

# Project configuration
PROJECT_DIR = Path(__file__).parent
PYTHON_DIRS = ["threadvault", "tests"]


@task
def clean(ctx):
    """Clean up build artifacts and cache files."""
    print("🧹 Cleaning up build artifacts...")
    patterns = [
        "**/__pycache__",
        "**/*.pyc",
        ".pytest_cache",
        "build",
        "dist",
        "*.egg-info",
        ".coverage",
        ".mypy_cache",
    ]

    for pattern in patterns:
        for path in PROJECT_DIR.glob(pattern):
            if path.is_dir():
                ctx.run(f"rm -rf {path}")
                print(f"  ✅ Removed directory: {path}")
            else:
                ctx.run(f"rm -f {path}")
                print(f"  ✅ Removed file: {path}")


@task
def format_code(ctx):
    """Format code with Black and isort."""
    print("🎨 Formatting code with Black and isort...")
    for python_dir in PYTHON_DIRS:
        if Path(python_dir).exists():
            ctx.run(f"black {python_dir}")
            ctx.run(f"isort {python_dir}")
    print("✅ Code formatting completed!")


@task(pre=[format_code])
def lint(ctx):
    """Format and run flake8."""
    print("🔍 Running flake8...")
    for python_dir in PYTHON_DIRS:
        if Path(python_dir).exists():
            ctx.run(f"flake8 {python_dir}")
    print("🎉 All linting checks passed successfully!")


@task(help={"marker": "Only run tests with this marker (unit, integration, memory, llm)"})
def test(ctx, marker=None):
    """Run the test suite."""
    print("🧪 Running tests...")
    command = "pytest tests"
    if marker:
        command += f" -m {marker}"
    ctx.run(command, pty=True)


@task
def install(ctx):
    """Install the package with test dependencies in editable mode."""
    print("📦 Installing ThreadVault...")
    ctx.run('pip install -e ".[test,dev]"')
    print("✅ Development environment setup completed!")


@task(pre=[clean, lint])
def ci(ctx):
    """Run CI pipeline (clean, lint, test)."""
    print("🔄 Running CI pipeline...")
    test(ctx)
    print("🎉 CI pipeline completed successfully!")


@task
def help(ctx):
    """Show available commands."""
    print(
        """
🛠️  ThreadVault Project Tasks

  invoke install      - Install the package with test and dev extras
  invoke format-code  - Format code with Black and isort
  invoke lint         - Format and run flake8
  invoke test         - Run tests (--marker unit|integration|memory|llm)
  invoke clean        - Clean build artifacts and cache
  invoke ci           - Run full CI pipeline
"""
    )


@task(default=True)
def default(ctx):
    """Show help by default."""
    help(ctx)
