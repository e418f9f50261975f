#!/usr/bin/env python3
from staticpress.cli import run

if __name__ == "__main__":
    run()
