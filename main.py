#!/usr/bin/env python3
"""Run the research assistant CLI from a source checkout."""

from research_assistant.cli import main

if __name__ == "__main__":
    main()
