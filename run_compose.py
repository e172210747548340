#!/usr/bin/env python3
"""
Main CLI entrypoint for Scenecast.

This is a convenience wrapper that imports and runs the compose pipeline.
"""

import sys

from scenecast.pipelines.compose_video import main

if __name__ == "__main__":
    sys.exit(main())
