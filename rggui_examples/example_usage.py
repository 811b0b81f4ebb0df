"""Example: running a search without the window.

Run with: python rggui_examples/example_usage.py TODO .
"""
import sys

from rggui import Failed, MatchFound, SearchOptions, run_search


def main():
    query = sys.argv[1] if len(sys.argv) > 1 else "TODO"
    root = sys.argv[2] if len(sys.argv) > 2 else "."

    def emit(event):
        if isinstance(event, MatchFound):
            m = event.match
            print(f"{m.file_path}:{m.line_number}: {m.line_text}")
        elif isinstance(event, Failed):
            print(event.message, file=sys.stderr)
        return True

    run_search(query, root, SearchOptions(globs="!*.lock"), emit)


if __name__ == '__main__':
    main()
