"""
Entry point for the Article Pipeline.
Delegates to article_pipeline.main.
"""
import sys

from article_pipeline.main import main

if __name__ == "__main__":
    sys.exit(main())
