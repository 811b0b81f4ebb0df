"""
rggui: a small desktop front-end for ripgrep.

The window is a thin consumer: every search runs `rg --json` on a worker
thread, the JSON lines are decoded into matches there, and the events are
handed to the Tk loop through a SearchChannel that the UI polls.

Run as `python rggui.py` (or `rggui` when installed).
"""

import os
import sys
import re
import csv
import json
import base64
import binascii
import logging
import shutil
import tempfile
import threading
import subprocess
import queue
from dataclasses import dataclass, field
from typing import Callable, Union
import tkinter as tk
from tkinter import ttk, filedialog, messagebox

__all__ = [
    "main",
    "__version__",
    "DecodeError",
    "ChannelDisconnected",
    "DisplayMatch",
    "MatchFound",
    "Failed",
    "Finished",
    "SearchOptions",
    "SearchChannel",
    "SearchSession",
    "decode_record",
    "decode_line",
    "split_globs",
    "build_rg_args",
    "run_search",
    "start_search",
]
__version__ = "0.1.0"

RG_PROGRAM = "rg"
RG_NOT_FOUND_MESSAGE = "Error: 'rg' command not found. Please ensure ripgrep is installed and in your PATH."

logger = logging.getLogger("rggui")


# ---------- Utilities ----------
class ToolTip:
    def __init__(self, widget, text: str, *, delay_ms: int = 500, wraplength: int = 360):
        self.widget = widget
        self.text = text
        self.delay_ms = delay_ms
        self.wraplength = wraplength
        self._after_id = None
        self._tip = None

        widget.bind("<Enter>", self._schedule, add="+")
        for seq in ("<Leave>", "<ButtonPress>", "<KeyPress>"):
            widget.bind(seq, self._cancel, add="+")

    def _schedule(self, _e=None):
        if self.text:
            self._after_id = self.widget.after(self.delay_ms, self._show)

    def _cancel(self, _e=None):
        if self._after_id is not None:
            try:
                self.widget.after_cancel(self._after_id)
            except tk.TclError:
                pass
            self._after_id = None
        if self._tip is not None:
            try:
                self._tip.destroy()
            except tk.TclError:
                pass
            self._tip = None

    def _show(self):
        if self._tip is not None:
            return
        try:
            x = self.widget.winfo_rootx() + 10
            y = self.widget.winfo_rooty() + self.widget.winfo_height() + 6
        except tk.TclError:
            return
        self._tip = tk.Toplevel(self.widget)
        self._tip.wm_overrideredirect(True)
        self._tip.wm_geometry(f"+{x}+{y}")
        ttk.Label(self._tip, text=self.text, justify="left", wraplength=self.wraplength,
                  padding=(8, 6), relief="solid").pack()


def default_root_path() -> str:
    """Home directory of the current user, or "." when it cannot be determined."""
    home = os.path.expanduser("~")
    if home == "~" or not os.path.isdir(home):
        return "."
    return home


def default_open(path: str):
    try:
        if sys.platform.startswith("win"):
            os.startfile(path)
        elif sys.platform == "darwin":
            subprocess.Popen(["open", path])
        else:
            subprocess.Popen(["xdg-open", path])
    except Exception as e:
        messagebox.showerror("Open Error", str(e))


def settings_path() -> str:
    base = os.getenv("APPDATA") or os.path.expanduser("~")
    return os.path.join(base, "rggui", "settings.json")


def load_settings(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(path: str, settings: dict):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2, ensure_ascii=False)


def write_results_csv(path: str, results: list["DisplayMatch"]):
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["File Path", "Line", "Line Text"])
        for m in results:
            w.writerow([m.file_path, m.line_number, m.line_text])


# ---------- ripgrep JSON records ----------
class DecodeError(ValueError):
    """A line of rg output that does not fit the --json schema."""


@dataclass(frozen=True)
class TextOrBytes:
    """rg writes paths and lines as {"text": ...}, or {"bytes": <base64>} when not valid UTF-8."""

    text: str | None = None
    data: bytes | None = None

    def to_string_lossy(self) -> str:
        if self.text is not None:
            return self.text
        return (self.data or b"").decode("utf-8", errors="replace")


@dataclass(frozen=True)
class DurationData:
    secs: int
    nanos: int
    human: str


@dataclass(frozen=True)
class Stats:
    elapsed: DurationData
    searches: int
    searches_with_match: int
    bytes_searched: int
    bytes_printed: int
    matched_lines: int
    matches: int


@dataclass(frozen=True)
class SubMatch:
    match: TextOrBytes
    start: int
    end: int


@dataclass(frozen=True)
class Begin:
    path: TextOrBytes | None


@dataclass(frozen=True)
class Match:
    path: TextOrBytes
    lines: TextOrBytes
    line_number: int | None
    absolute_offset: int
    submatches: tuple[SubMatch, ...]


@dataclass(frozen=True)
class Context:
    path: TextOrBytes
    lines: TextOrBytes
    line_number: int | None
    absolute_offset: int
    submatches: tuple[SubMatch, ...]


@dataclass(frozen=True)
class End:
    path: TextOrBytes | None
    binary_offset: int | None
    stats: Stats


@dataclass(frozen=True)
class Summary:
    elapsed_total: DurationData
    stats: Stats


@dataclass(frozen=True)
class UnknownRecord:
    """A record type this version does not know about; newer rg releases may add some."""

    type: str


RawRecord = Union[Begin, Match, Context, End, Summary, UnknownRecord]


@dataclass(frozen=True)
class DisplayMatch:
    file_path: str
    line_number: int
    line_text: str


def _field(obj: dict, key: str, kind, *, optional: bool = False):
    value = obj.get(key)
    if value is None:
        if optional:
            return None
        raise DecodeError(f"missing field {key!r}")
    if kind is int and isinstance(value, bool):
        raise DecodeError(f"field {key!r} must be an integer")
    if not isinstance(value, kind):
        raise DecodeError(f"field {key!r} has unexpected type {type(value).__name__}")
    if kind is int and value < 0:
        raise DecodeError(f"field {key!r} must not be negative")
    return value


def _text_or_bytes(obj: dict, key: str, *, optional: bool = False) -> TextOrBytes | None:
    raw = _field(obj, key, dict, optional=optional)
    if raw is None:
        return None
    if isinstance(raw.get("text"), str):
        return TextOrBytes(text=raw["text"])
    if isinstance(raw.get("bytes"), str):
        try:
            return TextOrBytes(data=base64.b64decode(raw["bytes"], validate=True))
        except binascii.Error as e:
            raise DecodeError(f"field {key!r} has invalid base64: {e}") from e
    raise DecodeError(f"field {key!r} is neither text nor bytes")


def _duration(obj: dict, key: str) -> DurationData:
    raw = _field(obj, key, dict)
    return DurationData(
        secs=_field(raw, "secs", int),
        nanos=_field(raw, "nanos", int),
        human=_field(raw, "human", str),
    )


def _stats(obj: dict) -> Stats:
    raw = _field(obj, "stats", dict)
    return Stats(
        elapsed=_duration(raw, "elapsed"),
        searches=_field(raw, "searches", int),
        searches_with_match=_field(raw, "searches_with_match", int),
        bytes_searched=_field(raw, "bytes_searched", int),
        bytes_printed=_field(raw, "bytes_printed", int),
        matched_lines=_field(raw, "matched_lines", int),
        matches=_field(raw, "matches", int),
    )


def _submatches(obj: dict) -> tuple[SubMatch, ...]:
    out = []
    for raw in _field(obj, "submatches", list):
        if not isinstance(raw, dict):
            raise DecodeError("submatch is not an object")
        out.append(SubMatch(
            match=_text_or_bytes(raw, "match"),
            start=_field(raw, "start", int),
            end=_field(raw, "end", int),
        ))
    return tuple(out)


def _line_fields(data: dict) -> dict:
    return dict(
        path=_text_or_bytes(data, "path"),
        lines=_text_or_bytes(data, "lines"),
        line_number=_field(data, "line_number", int, optional=True),
        absolute_offset=_field(data, "absolute_offset", int),
        submatches=_submatches(data),
    )


_RECORD_DECODERS: dict[str, Callable[[dict], RawRecord]] = {
    "begin": lambda d: Begin(path=_text_or_bytes(d, "path", optional=True)),
    "match": lambda d: Match(**_line_fields(d)),
    "context": lambda d: Context(**_line_fields(d)),
    "end": lambda d: End(
        path=_text_or_bytes(d, "path", optional=True),
        binary_offset=_field(d, "binary_offset", int, optional=True),
        stats=_stats(d),
    ),
    "summary": lambda d: Summary(elapsed_total=_duration(d, "elapsed_total"), stats=_stats(d)),
}


def decode_record(line: str) -> RawRecord:
    """Decode one line of `rg --json` output.

    Raises DecodeError for anything that is not a well-formed record. A
    well-formed record with an unrecognised "type" comes back as an
    UnknownRecord instead of an error.
    """
    try:
        obj = json.loads(line)
    except (ValueError, RecursionError) as e:
        raise DecodeError(f"invalid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise DecodeError("record is not an object")
    kind = _field(obj, "type", str)
    decoder = _RECORD_DECODERS.get(kind)
    if decoder is None:
        return UnknownRecord(type=kind)
    return decoder(_field(obj, "data", dict))


def decode_line(line: str) -> DisplayMatch | None:
    """Project a line of rg output to a DisplayMatch; anything else yields None."""
    try:
        record = decode_record(line)
    except DecodeError as e:
        logger.debug("Dropping rg output line (%s): %r", e, line)
        return None
    if not isinstance(record, Match):
        return None
    return DisplayMatch(
        file_path=record.path.to_string_lossy(),
        line_number=record.line_number or 0,
        line_text=record.lines.to_string_lossy().rstrip(),
    )


# ---------- Search events ----------
@dataclass(frozen=True)
class MatchFound:
    match: DisplayMatch


@dataclass(frozen=True)
class Failed:
    message: str


@dataclass(frozen=True)
class Finished:
    pass


StreamEvent = Union[MatchFound, Failed, Finished]


def is_terminal(event: StreamEvent) -> bool:
    return isinstance(event, (Failed, Finished))


class ChannelDisconnected(Exception):
    """The producing side went away without sending a terminal event."""


class SearchChannel:
    """Unbounded, ordered hand-off from one search worker to the UI thread.

    The worker calls send() until it returns False (the UI called close())
    and always calls close_sender() on the way out. The UI polls with
    try_recv()/drain() and never blocks.
    """

    def __init__(self):
        self._q: queue.Queue = queue.Queue()
        self._receiver_closed = threading.Event()
        self._sender_closed = threading.Event()

    def send(self, event: StreamEvent) -> bool:
        if self._receiver_closed.is_set():
            return False
        self._q.put(event)
        return True

    def close_sender(self):
        self._sender_closed.set()

    def close(self):
        self._receiver_closed.set()

    @property
    def closed(self) -> bool:
        return self._receiver_closed.is_set()

    def try_recv(self) -> StreamEvent:
        try:
            return self._q.get_nowait()
        except queue.Empty:
            # the sender puts its last event before closing, so check again
            if self._sender_closed.is_set() and self._q.empty():
                raise ChannelDisconnected("search worker exited without a result") from None
            raise

    def drain(self, limit: int) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        while len(events) < limit:
            try:
                events.append(self.try_recv())
            except queue.Empty:
                break
            except ChannelDisconnected:
                if events:
                    break
                raise
        return events


# ---------- Search bridge ----------
@dataclass(frozen=True)
class SearchOptions:
    case_insensitive: bool = False
    search_hidden: bool = False
    follow_symlinks: bool = False
    globs: str | None = None


def split_globs(text: str) -> list[str]:
    return [g.strip() for g in re.split(r"[,;]", text) if g.strip()]


def build_rg_args(query: str, root_path: str, options: SearchOptions) -> list[str]:
    args = ["--json", query, root_path]
    if options.case_insensitive:
        args.append("-i")
    if options.search_hidden:
        args.append("--hidden")
    if options.follow_symlinks:
        args.append("-L")
    for g in split_globs(options.globs or ""):
        args.extend(["-g", g])
    return args


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        return f"rg was terminated by signal {-returncode}"
    return f"rg exited with status: {returncode}"


def _abandon(proc: subprocess.Popen):
    try:
        proc.terminate()
        proc.wait(timeout=2)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()
    except OSError as e:
        logger.warning("Could not stop rg (pid %s): %s", proc.pid, e)


def run_search(
    query: str,
    root_path: str,
    options: SearchOptions,
    emit: Callable[[StreamEvent], bool],
    *,
    program: str = RG_PROGRAM,
):
    """Run one rg invocation to completion, reporting through `emit`.

    `emit` returns False once nobody is listening any more; the search then
    stops quietly. Otherwise exactly one Finished or Failed is emitted last.
    """
    cmd = [program, *build_rg_args(query, root_path, options)]
    logger.info("Starting search: %s", subprocess.list2cmdline(cmd))

    with tempfile.TemporaryFile() as stderr_file:
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=stderr_file,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError:
            logger.warning("rg not found: %s", program)
            emit(Failed(RG_NOT_FOUND_MESSAGE))
            return
        except OSError as e:
            logger.warning("Failed to spawn rg: %s", e)
            emit(Failed(f"Failed to spawn rg process: {e}"))
            return

        assert proc.stdout is not None
        try:
            for line in proc.stdout:
                match = decode_line(line)
                if match is None:
                    continue
                if not emit(MatchFound(match)):
                    logger.info("Search abandoned, stopping rg (pid %s).", proc.pid)
                    _abandon(proc)
                    return
        except OSError as e:
            logger.warning("Error reading rg output: %s", e)
            emit(Failed(f"Error reading rg output: {e}"))
            return
        finally:
            proc.stdout.close()

        try:
            returncode = proc.wait()
        except OSError as e:
            logger.warning("Failed to wait for rg: %s", e)
            emit(Failed(f"Failed to wait for rg process: {e}"))
            return

        stderr_file.seek(0)
        stderr = stderr_file.read().decode("utf-8", errors="replace").strip()

    logger.info("rg exited with status %s", returncode)
    if returncode == 0:
        emit(Finished())
    elif stderr:
        emit(Failed(f"rg exited with error: {stderr}"))
    else:
        emit(Failed(_describe_exit(returncode)))


def start_search(query: str, root_path: str, options: SearchOptions, *, program: str = RG_PROGRAM) -> SearchChannel:
    """Run a search on its own thread and return the channel its events arrive on."""
    channel = SearchChannel()

    def worker():
        try:
            run_search(query, root_path, options, channel.send, program=program)
        finally:
            channel.close_sender()

    threading.Thread(target=worker, name="rggui-search", daemon=True).start()
    return channel


# ---------- Search session ----------
class SearchSession:
    """The window's view of the current search, kept free of Tk.

    Results only grow while a search runs and are reset by begin() or
    clear(). poll() stops at the first Finished or Failed and drops the
    channel, so nothing arriving after it is looked at.
    """

    def __init__(self):
        self.channel: SearchChannel | None = None
        self.results: list[DisplayMatch] = []
        self.error_message: str | None = None
        self.status = "Ready"

    @property
    def running(self) -> bool:
        return self.channel is not None

    def begin(self, channel: SearchChannel):
        self.channel = channel
        self.results = []
        self.error_message = None
        self.status = "Starting search..."

    def stop(self):
        if self.channel is None:
            return
        self.channel.close()
        self.channel = None
        self.status = f"Search stopped. Found {len(self.results)} results."

    def clear(self):
        self.stop()
        self.results = []
        self.error_message = None
        self.status = "Ready"

    def _end(self, status: str, error: str | None = None):
        self.channel.close()
        self.channel = None
        self.status = status
        self.error_message = error

    def poll(self, limit: int) -> tuple[list[DisplayMatch], bool]:
        """Take up to `limit` buffered events; returns the new matches and whether more are waiting."""
        if self.channel is None:
            return [], False
        try:
            events = self.channel.drain(limit)
        except ChannelDisconnected:
            self._end("Error: Search thread disconnected.", "Search thread disconnected unexpectedly.")
            return [], False

        new: list[DisplayMatch] = []
        for event in events:
            if isinstance(event, MatchFound):
                self.results.append(event.match)
                new.append(event.match)
            elif isinstance(event, Finished):
                self._end(f"Search finished. Found {len(self.results)} results.")
                return new, False
            elif isinstance(event, Failed):
                self._end(f"Search failed: {event.message}", event.message)
                return new, False

        if events:
            self.status = f"Found {len(self.results)} results..."
        else:
            self.status = f"Searching... Found {len(self.results)} results."
        return new, len(events) >= limit


# ---------- App State ----------
@dataclass
class AppState:
    # inputs
    query_entry: ttk.Entry
    dir_entry: ttk.Entry
    case_insensitive_var: tk.BooleanVar
    search_hidden_var: tk.BooleanVar
    follow_symlinks_var: tk.BooleanVar
    globs_entry: ttk.Entry

    # output
    result_tree: ttk.Treeview
    status_label: ttk.Label
    error_label: ttk.Label
    btn_search: ttk.Button
    btn_stop: ttk.Button

    # runtime
    session: SearchSession = field(default_factory=SearchSession)


class RgGui:
    max_events_per_tick = 800

    def __init__(self, root):
        self.root = root
        self.root.title("rggui")
        self.root.geometry("1000x680")

        self.logging_enabled = tk.BooleanVar(value=False)
        self._logger = logger
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        self._log_handler: logging.Handler | None = None
        self._rg_path = shutil.which(RG_PROGRAM)
        self._settings = load_settings(settings_path())

        self._build_styles()
        self.state = self._build_main_ui()
        self._apply_settings()
        if not self._rg_path:
            self._set_status("rg not found on PATH; install ripgrep to search.")
        self._show_empty_results()

    # ---------- Styles ----------
    def _build_styles(self):
        style = ttk.Style()
        if "clam" in style.theme_names():
            style.theme_use("clam")

        self.colors = dict(
            bg="#F8FAFC", fg="#0E1726", accent="#2563EB", accent_hover="#1E40AF",
            muted="#F1F5F9", muted2="#E2E8F0", danger="#DC2626", surface="#FFFFFF", subtle="#64748B",
        )
        c = self.colors
        self.root.configure(bg=c["bg"])

        style.configure("TFrame", background=c["bg"])
        style.configure("TLabel", background=c["bg"], foreground=c["fg"])
        style.configure("Header.TLabel", font=("Segoe UI", 13, "bold"))
        style.configure("Error.TLabel", foreground=c["danger"])
        style.configure("TCheckbutton", background=c["bg"], foreground=c["fg"])
        style.configure("TLabelframe", background=c["bg"])
        style.configure("TLabelframe.Label", background=c["bg"], foreground=c["fg"], font=("Segoe UI", 10, "bold"))
        style.configure("TButton", background=c["muted"], padding=(10, 4))
        style.map("TButton", background=[("active", c["muted2"])])
        style.configure("Accent.TButton", background=c["accent"], foreground="#FFFFFF")
        style.map("Accent.TButton", background=[("active", c["accent_hover"])])
        style.configure("Danger.TButton", background=c["danger"], foreground="#FFFFFF")
        style.map("Danger.TButton", background=[("active", "#B91C1C")])
        style.configure("Treeview", background=c["surface"], fieldbackground=c["surface"],
                        foreground=c["fg"], rowheight=22, font=("Consolas", 10))
        style.configure("Treeview.Heading", background=c["muted"], font=("Segoe UI", 10, "bold"))
        style.map("Treeview", background=[("selected", "#DBEAFE")], foreground=[("selected", c["fg"])])

    # ---------- Main UI ----------
    def _build_main_ui(self) -> AppState:
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

        content = ttk.Frame(self.root, padding=10)
        content.pack(fill="both", expand=True)
        ttk.Label(content, text="Ripgrep GUI", style="Header.TLabel").pack(anchor="w")
        ttk.Separator(content).pack(fill="x", pady=6)

        inputs = ttk.Frame(content)
        inputs.pack(fill="x")
        ttk.Label(inputs, text="Search:").grid(row=0, column=0, sticky="e", padx=5, pady=3)
        query_entry = ttk.Entry(inputs)
        query_entry.grid(row=0, column=1, sticky="we", padx=5, pady=3)

        ttk.Label(inputs, text="Path:").grid(row=1, column=0, sticky="e", padx=5, pady=3)
        dir_entry = ttk.Entry(inputs)
        dir_entry.insert(0, default_root_path())
        dir_entry.grid(row=1, column=1, sticky="we", padx=5, pady=3)
        ttk.Button(inputs, text="Browse...", command=lambda: self._pick_folder(dir_entry)).grid(row=1, column=2, padx=5)
        inputs.grid_columnconfigure(1, weight=1)

        options = ttk.Labelframe(content, text="Options", padding=8)
        options.pack(fill="x", pady=(6, 0))
        case_insensitive_var = tk.BooleanVar(value=False)
        search_hidden_var = tk.BooleanVar(value=False)
        follow_symlinks_var = tk.BooleanVar(value=False)
        ttk.Checkbutton(options, text="Case Insensitive (-i)", variable=case_insensitive_var).grid(row=0, column=0, sticky="w", padx=5)
        ttk.Checkbutton(options, text="Search Hidden Files (--hidden)", variable=search_hidden_var).grid(row=0, column=1, sticky="w", padx=5)
        ttk.Checkbutton(options, text="Follow Symlinks (-L)", variable=follow_symlinks_var).grid(row=0, column=2, sticky="w", padx=5)
        ttk.Label(options, text="Globs (-g):").grid(row=1, column=0, sticky="e", padx=5, pady=(6, 0))
        globs_entry = ttk.Entry(options, width=50)
        globs_entry.grid(row=1, column=1, columnspan=2, sticky="we", padx=5, pady=(6, 0))
        ToolTip(globs_entry, "Comma or semicolon separated glob patterns, each passed as -g.\ne.g., !*.log; *.py")

        btns = ttk.Frame(content)
        btns.pack(fill="x", pady=(10, 0))
        btn_search = ttk.Button(btns, text="Search", style="Accent.TButton", command=self.start_search)
        btn_search.pack(side="left", padx=(0, 8))
        btn_stop = ttk.Button(btns, text="Stop", style="Danger.TButton", command=self.stop_search, state="disabled")
        btn_stop.pack(side="left", padx=(0, 8))
        more_btn = ttk.Menubutton(btns, text="More")
        more_btn.pack(side="left", padx=(0, 12))
        more_menu = tk.Menu(more_btn, tearoff=0)
        more_menu.add_command(label="Clear Results", command=self.clear_results)
        more_menu.add_command(label="Export CSV", command=self.export_csv)
        more_menu.add_separator()
        more_menu.add_checkbutton(label="Logging to search.log", variable=self.logging_enabled,
                                  command=self._toggle_logging)
        more_btn.configure(menu=more_menu)
        status_label = ttk.Label(btns, text="Ready")
        status_label.pack(side="left")

        error_label = ttk.Label(content, text="", style="Error.TLabel", wraplength=900, justify="left")
        error_label.pack(fill="x", pady=(6, 0))

        result_frame = ttk.Labelframe(content, text="Results", padding=6)
        result_frame.pack(fill="both", expand=True, pady=(6, 0))
        tree_scroll_y = ttk.Scrollbar(result_frame, orient="vertical")
        tree_scroll_x = ttk.Scrollbar(result_frame, orient="horizontal")
        result_tree = ttk.Treeview(
            result_frame,
            columns=("filepath", "line_no", "line_text"),
            show="headings",
            yscrollcommand=tree_scroll_y.set,
            xscrollcommand=tree_scroll_x.set,
        )
        tree_scroll_y.configure(command=result_tree.yview)
        tree_scroll_x.configure(command=result_tree.xview)
        result_tree.heading("filepath", text="File Path")
        result_tree.heading("line_no", text="Line")
        result_tree.heading("line_text", text="Line Text")
        result_tree.column("filepath", width=380, anchor="w")
        result_tree.column("line_no", width=60, anchor="e", stretch=False)
        result_tree.column("line_text", width=520, anchor="w")
        result_tree.tag_configure("oddrow", background=self.colors["muted"])
        result_tree.tag_configure("evenrow", background=self.colors["surface"])
        result_tree.tag_configure("emptyrow", foreground=self.colors["subtle"])
        tree_scroll_y.pack(side="right", fill="y")
        tree_scroll_x.pack(side="bottom", fill="x")
        result_tree.pack(side="left", fill="both", expand=True)
        self._attach_tree_behaviors(result_tree)

        query_entry.bind("<Return>", lambda _e: self.start_search())
        query_entry.focus_set()

        return AppState(
            query_entry=query_entry,
            dir_entry=dir_entry,
            case_insensitive_var=case_insensitive_var,
            search_hidden_var=search_hidden_var,
            follow_symlinks_var=follow_symlinks_var,
            globs_entry=globs_entry,
            result_tree=result_tree,
            status_label=status_label,
            error_label=error_label,
            btn_search=btn_search,
            btn_stop=btn_stop,
        )

    # ---------- Logging ----------
    def _toggle_logging(self):
        if self.logging_enabled.get():
            if self._log_handler is not None:
                return
            try:
                handler = logging.FileHandler("search.log", encoding="utf-8")
            except OSError as e:
                self.logging_enabled.set(False)
                messagebox.showerror("Logging Error", str(e))
                return
            handler.setLevel(logging.INFO)
            handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
            self._logger.addHandler(handler)
            self._log_handler = handler
            self._logger.info("Logging enabled.")
        elif self._log_handler is not None:
            self._logger.info("Logging disabled.")
            self._logger.removeHandler(self._log_handler)
            try:
                self._log_handler.close()
            finally:
                self._log_handler = None

    def _log_exception(self, msg: str, exc: Exception):
        if self.logging_enabled.get():
            self._logger.error("%s: %s", msg, exc, exc_info=exc)

    # ---------- Settings ----------
    def _apply_settings(self):
        s = self._settings.get("defaults", {})
        if not isinstance(s, dict):
            return
        directory = s.get("directory")
        if isinstance(directory, str) and directory:
            self.state.dir_entry.delete(0, tk.END)
            self.state.dir_entry.insert(0, directory)
        self.state.case_insensitive_var.set(bool(s.get("case_insensitive", False)))
        self.state.search_hidden_var.set(bool(s.get("search_hidden", False)))
        self.state.follow_symlinks_var.set(bool(s.get("follow_symlinks", False)))
        self.state.globs_entry.delete(0, tk.END)
        self.state.globs_entry.insert(0, str(s.get("globs", "")))

    def _remember_settings(self):
        self._settings = {
            "defaults": {
                "directory": self.state.dir_entry.get().strip(),
                "case_insensitive": self.state.case_insensitive_var.get(),
                "search_hidden": self.state.search_hidden_var.get(),
                "follow_symlinks": self.state.follow_symlinks_var.get(),
                "globs": self.state.globs_entry.get(),
            }
        }
        try:
            save_settings(settings_path(), self._settings)
        except OSError as e:
            self._log_exception("Failed to save settings", e)

    def _on_close(self):
        self.state.session.stop()
        try:
            self._remember_settings()
        finally:
            self.root.destroy()

    # ---------- Helpers for UI ----------
    def _pick_folder(self, entry: ttk.Entry):
        d = filedialog.askdirectory(initialdir=entry.get() or None)
        if d:
            entry.delete(0, tk.END)
            entry.insert(0, d)

    def _set_status(self, text: str):
        self.state.session.status = text
        self._refresh_labels()

    def _refresh_labels(self):
        session = self.state.session
        self.state.status_label.configure(text=session.status)
        message = session.error_message
        self.state.error_label.configure(text=f"Error: {message}" if message else "")
        self.state.btn_search.configure(state="disabled" if session.running else "normal")
        self.state.btn_stop.configure(state="normal" if session.running else "disabled")

    def _show_empty_results(self):
        tree = self.state.result_tree
        session = self.state.session
        if tree.get_children() or session.error_message or session.running:
            return
        tree.insert("", "end", iid="__empty__", tags=("emptyrow",),
                    values=("No results yet. Enter a query and path, then click Search.", "", ""))

    def _clear_tree(self):
        tree = self.state.result_tree
        tree.delete(*tree.get_children())

    def _append_rows(self, matches: list[DisplayMatch]):
        tree = self.state.result_tree
        if matches and tree.exists("__empty__"):
            tree.delete("__empty__")
        idx = len(self.state.session.results) - len(matches)
        for m in matches:
            tag = "oddrow" if idx % 2 else "evenrow"
            tree.insert("", "end", values=(m.file_path, m.line_number, m.line_text), tags=(tag,))
            idx += 1

    def _current_options(self) -> SearchOptions:
        globs = self.state.globs_entry.get()
        return SearchOptions(
            case_insensitive=self.state.case_insensitive_var.get(),
            search_hidden=self.state.search_hidden_var.get(),
            follow_symlinks=self.state.follow_symlinks_var.get(),
            globs=globs if globs else None,
        )

    # ---------- Actions ----------
    def start_search(self):
        if self.state.session.running:
            return
        query = self.state.query_entry.get()
        directory = self.state.dir_entry.get().strip()
        if not query:
            messagebox.showerror("Input Error", "Please enter a search string.")
            return
        if not directory:
            messagebox.showerror("Input Error", "Please select a directory.")
            return

        self._remember_settings()
        channel = start_search(query, directory, self._current_options(), program=self._rg_path or RG_PROGRAM)
        self.state.session.begin(channel)
        self._clear_tree()
        self._refresh_labels()
        self._pump_events(channel)

    def stop_search(self):
        self.state.session.stop()
        self._refresh_labels()

    def clear_results(self):
        self.state.session.clear()
        self._clear_tree()
        self._refresh_labels()
        self._show_empty_results()

    def export_csv(self):
        path = filedialog.asksaveasfilename(defaultextension=".csv", filetypes=[("CSV files", "*.csv")])
        if not path:
            return
        try:
            write_results_csv(path, self.state.session.results)
        except OSError as e:
            self._log_exception("Failed to export CSV", e)
            messagebox.showerror("Export Error", str(e))
            return
        self._set_status(f"Saved CSV → {path}")

    # ---------- Channel pump ----------
    def _pump_events(self, channel: SearchChannel):
        session = self.state.session
        # a stopped or replaced search keeps no callback alive
        if channel is not session.channel:
            return
        new, backlog = session.poll(self.max_events_per_tick)
        self._append_rows(new)
        self._refresh_labels()
        if session.channel is channel:
            self.root.after(1 if backlog else 50, lambda: self._pump_events(channel))
        else:
            self._show_empty_results()

    # ---------- Tree actions ----------
    def _attach_tree_behaviors(self, tree: ttk.Treeview):
        menu = tk.Menu(tree, tearoff=0)
        menu.add_command(label="Copy File Path", command=lambda: self._copy_selected(tree, 0))
        menu.add_command(label="Copy Line Text", command=lambda: self._copy_selected(tree, 2))
        menu.add_separator()
        menu.add_command(label="Open File", command=lambda: self._open_file(tree))
        menu.add_command(label="Open Directory", command=lambda: self._open_directory(tree))

        def show_menu(e):
            iid = tree.identify_row(e.y)
            if iid and iid != "__empty__":
                tree.selection_set(iid)
                menu.tk_popup(e.x_root, e.y_root)
        tree.bind("<Button-3>", show_menu)
        tree.bind("<Double-1>", lambda _e: self._open_file(tree))

    def _selected_values(self, tree: ttk.Treeview) -> tuple | None:
        sel = tree.selection()
        if not sel or sel[0] == "__empty__":
            return None
        return tree.item(sel[0], "values")

    def _copy_selected(self, tree: ttk.Treeview, column: int):
        vals = self._selected_values(tree)
        if not vals or len(vals) <= column:
            return
        self.root.clipboard_clear()
        self.root.clipboard_append(vals[column])

    def _open_file_at_line(self, fp: str, line_no: int):
        if line_no > 0:
            editors = [
                (shutil.which("code"), lambda exe: [exe, "-g", f"{fp}:{line_no}"]),
                (shutil.which("notepad++.exe") or shutil.which("notepad++"), lambda exe: [exe, f"-n{line_no}", fp]),
                (shutil.which("gvim"), lambda exe: [exe, f"+{line_no}", fp]),
            ]
            for exe, argv in editors:
                if not exe:
                    continue
                try:
                    subprocess.Popen(argv(exe))
                    return
                except OSError as e:
                    self._log_exception(f"Failed to launch {exe}", e)
        default_open(fp)

    def _open_file(self, tree: ttk.Treeview):
        vals = self._selected_values(tree)
        if not vals:
            return
        try:
            line_no = int(vals[1])
        except (TypeError, ValueError):
            line_no = 0
        self._open_file_at_line(vals[0], line_no)

    def _open_directory(self, tree: ttk.Treeview):
        vals = self._selected_values(tree)
        if not vals:
            return
        fp = vals[0]
        default_open(fp if os.path.isdir(fp) else os.path.dirname(fp) or ".")


# ---------- Main ----------
def main() -> None:
    root = tk.Tk()
    RgGui(root)
    root.mainloop()


if __name__ == "__main__":
    main()
