import json
import sys

import pytest


@pytest.fixture
def fake_rg(tmp_path):
    """Build an executable that stands in for rg: prints canned output and exits."""

    if sys.platform.startswith("win"):
        pytest.skip("fake rg scripts rely on a shebang line")

    def make(stdout_lines=(), stderr="", exit_code=0, argv_file=None):
        out = "".join(line + "\n" for line in stdout_lines)
        script = tmp_path / "rg"
        script.write_text(
            f"#!{sys.executable}\n"
            "import json, sys\n"
            f"argv_file = {str(argv_file) if argv_file else None!r}\n"
            "if argv_file:\n"
            "    with open(argv_file, 'w') as f:\n"
            "        json.dump(sys.argv[1:], f)\n"
            f"sys.stdout.write({out!r})\n"
            "sys.stdout.flush()\n"
            f"sys.stderr.write({stderr!r})\n"
            f"sys.exit({exit_code})\n",
            encoding="utf-8",
        )
        script.chmod(0o755)
        return str(script)

    return make


def rg_match(path: str, line_number, text: str, offset: int = 0) -> str:
    data = {
        "path": {"text": path},
        "lines": {"text": text},
        "line_number": line_number,
        "absolute_offset": offset,
        "submatches": [{"match": {"text": text.strip()[:4]}, "start": 0, "end": 4}],
    }
    return json.dumps({"type": "match", "data": data})
