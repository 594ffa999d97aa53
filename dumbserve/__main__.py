"""Entry point for running dumbserve as a module.

This module allows dumbserve to be run as a Python module using the -m flag:
    python -m dumbserve --dir /srv/git --port 3000
"""

from . import web

if __name__ == "__main__":
    web._main()
