"""Module entrypoint for `python -m retryguard`."""

try:
    from .cli import run
except ImportError:
    # Script execution outside package context.
    from retryguard.cli import run


if __name__ == "__main__":
    raise SystemExit(run())
