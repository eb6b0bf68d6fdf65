#!/usr/bin/env python3
"""Development startup script."""

from dock_broker.bootstrap import main

if __name__ == "__main__":
    main()
