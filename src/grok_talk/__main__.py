import sys

from grok_talk.cli import main

if __name__ == "__main__":
    sys.exit(main())
