from __future__ import annotations

from pushserve.server import run


def main() -> None:
    run()


if __name__ == "__main__":  # pragma: no cover
    main()
