#!/usr/bin/env python


"""
The main entry point.
Invoke as `asgi-bucket-dav' or `python -m asgi_bucket_dav'.
"""


def main():
    import sys

    from .cli import main as cli_main

    try:
        sys.exit(cli_main())

    except KeyboardInterrupt:
        sys.exit(1)


if __name__ == "__main__":
    main()
