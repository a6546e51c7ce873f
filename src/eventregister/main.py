#!/usr/bin/env python3

from __future__ import annotations

from signal import SIGINT, signal

from eventregister.ui.cli import main, sigint_handler

if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
