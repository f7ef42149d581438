from __future__ import annotations

import locale
import logging
import sys
import threading
import tkinter as tk
from tkinter import messagebox, ttk
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from celebration import CelebrationRunner, Particle, ToneCue
from config import Config
from inventory import GENRES, MAX_RATING, STATUSES, TO_READ, BookDraft, CollectionStore
from media import fetch_and_cache_cover, load_thumbnail
from render import (
    NO_COVER_TEXT,
    STATUS_LABELS,
    CardView,
    LibraryController,
    ListView,
    RenderCoordinator,
    star_title,
)
from storage import SQLiteStorage
from views import SORT_KEYS, STATUS_FILTERS, ViewCriteria

logger = logging.getLogger(__name__)

BACKGROUND = "#1f2126"
CARD_BG = "#2f3138"
TEXT = "#f2f2f2"
MUTED = "#a9adb8"
STAR_ON = "#f5c518"
STAR_OFF = "#5a5d66"
PILL_COLORS = {
    "pill": ("#44474f", TEXT),
    "pill pill--warn": ("#b7791f", "#1f2126"),
    "pill pill--ok": ("#2f855a", TEXT),
}
FRAME_MS = 16
COVER_SIZE = (60, 90)


# --------------------------------------------------------------------------- #
# Utility helpers
# --------------------------------------------------------------------------- #
def truncate(value: str, length: int) -> str:
    if len(value) <= length:
        return value
    return value[: length - 1] + "…"


def blend(alpha: float, foreground: str = "#ffffff", background: str = BACKGROUND) -> str:
    """Tk has no alpha channel, so fade by mixing toward the background colour."""
    fg = [int(foreground[i : i + 2], 16) for i in (1, 3, 5)]
    bg = [int(background[i : i + 2], 16) for i in (1, 3, 5)]
    alpha = max(0.0, min(1.0, alpha)) * 0.9
    mixed = [round(b + (f - b) * alpha) for f, b in zip(fg, bg)]
    return "#{:02x}{:02x}{:02x}".format(*mixed)


# --------------------------------------------------------------------------- #
# Toast
# --------------------------------------------------------------------------- #
class Toast:
    """Transient message at the bottom of the window; a new message restarts the timer."""

    def __init__(self, master: tk.Misc, *, duration_ms: int = Config.TOAST_MS):
        self.master = master
        self.duration_ms = duration_ms
        self.label = tk.Label(
            master,
            text="",
            bg="#3b3f48",
            fg=TEXT,
            padx=14,
            pady=8,
            font=("Helvetica", 11),
        )
        self._hide_job: Optional[str] = None

    def show(self, message: str) -> None:
        self.label.configure(text=message)
        self.label.place(relx=0.5, rely=1.0, y=-24, anchor="s")
        self.label.lift()
        if self._hide_job is not None:
            self.master.after_cancel(self._hide_job)
        self._hide_job = self.master.after(self.duration_ms, self.hide)

    def hide(self) -> None:
        self._hide_job = None
        self.label.place_forget()


# --------------------------------------------------------------------------- #
# Confetti overlay
# --------------------------------------------------------------------------- #
class ConfettiCanvas(tk.Canvas):
    """Full-window overlay for confetti bursts.

    Tk canvases cannot be transparent, so while a burst runs (``CELEBRATION_MS``) the
    overlay hides the book list and takes mouse clicks. It is removed as soon as the last
    burst finishes.
    """

    def __init__(self, master: tk.Misc):
        super().__init__(master, highlightthickness=0, background=BACKGROUND)

    def size(self) -> Tuple[int, int]:
        self.update_idletasks()
        return self.master.winfo_width(), self.master.winfo_height()

    def show(self) -> None:
        self.place(relx=0, rely=0, relwidth=1, relheight=1)
        self.lift()

    def hide(self) -> None:
        self.place_forget()

    def draw(self, tag: str, particles: Sequence[Particle], scale: float) -> None:
        self.delete(tag)
        for particle in particles:
            if particle.alpha <= 0:
                continue
            self.create_polygon(
                particle.corners(scale),
                fill=blend(particle.alpha),
                outline="",
                tags=(tag,),
            )

    def erase(self, tag: str) -> None:
        self.delete(tag)


# --------------------------------------------------------------------------- #
# Add-book form
# --------------------------------------------------------------------------- #
class BookForm(ttk.Frame):
    def __init__(self, master: tk.Misc, controller: "MainApplication"):
        super().__init__(master, padding=12)
        self.controller = controller
        self._build_ui()

    def _build_ui(self) -> None:
        self.columnconfigure(1, weight=1)
        self.columnconfigure(3, weight=1)

        ttk.Label(self, text="Title:").grid(row=0, column=0, sticky="w", pady=2)
        self.title_var = tk.StringVar()
        title_entry = ttk.Entry(self, textvariable=self.title_var)
        title_entry.grid(row=0, column=1, sticky="ew", padx=(4, 12), pady=2)

        ttk.Label(self, text="Author:").grid(row=0, column=2, sticky="w", pady=2)
        self.author_var = tk.StringVar()
        ttk.Entry(self, textvariable=self.author_var).grid(
            row=0, column=3, sticky="ew", padx=(4, 0), pady=2
        )

        ttk.Label(self, text="Genre:").grid(row=1, column=0, sticky="w", pady=2)
        self.genre_var = tk.StringVar()
        ttk.Combobox(
            self, textvariable=self.genre_var, values=GENRES, state="readonly"
        ).grid(row=1, column=1, sticky="ew", padx=(4, 12), pady=2)

        ttk.Label(self, text="Status:").grid(row=1, column=2, sticky="w", pady=2)
        self.status_var = tk.StringVar(value=STATUS_LABELS[TO_READ])
        ttk.Combobox(
            self,
            textvariable=self.status_var,
            values=[STATUS_LABELS[status] for status in STATUSES],
            state="readonly",
        ).grid(row=1, column=3, sticky="ew", padx=(4, 0), pady=2)

        ttk.Label(self, text="ISBN (optional):").grid(row=2, column=0, sticky="w", pady=2)
        self.isbn_var = tk.StringVar()
        ttk.Entry(self, textvariable=self.isbn_var).grid(
            row=2, column=1, sticky="ew", padx=(4, 12), pady=2
        )

        ttk.Button(self, text="Add book", command=self.submit).grid(
            row=2, column=3, sticky="e", pady=2
        )
        title_entry.bind("<Return>", lambda _event: self.submit())

    def draft(self) -> BookDraft:
        labels_to_status = {label: status for status, label in STATUS_LABELS.items()}
        return BookDraft(
            title=self.title_var.get(),
            author=self.author_var.get(),
            genre=self.genre_var.get(),
            status=labels_to_status.get(self.status_var.get(), ""),
            isbn=self.isbn_var.get(),
        )

    def submit(self) -> None:
        if self.controller.library.add(self.draft()) is None:
            return
        self.reset()

    def reset(self) -> None:
        for var in (self.title_var, self.author_var, self.genre_var, self.isbn_var):
            var.set("")
        self.status_var.set(STATUS_LABELS[TO_READ])


# --------------------------------------------------------------------------- #
# Toolbar: search, filter, sort
# --------------------------------------------------------------------------- #
class Toolbar(ttk.Frame):
    def __init__(self, master: tk.Misc, controller: "MainApplication"):
        super().__init__(master, padding=(12, 0, 12, 8))
        self.controller = controller
        self._filters = {label: value for value, label in STATUS_FILTERS}
        self._sorts = {label: value for value, label in SORT_KEYS}
        self._build_ui()

    def _build_ui(self) -> None:
        self.columnconfigure(1, weight=1)

        ttk.Label(self, text="Search:").grid(row=0, column=0, sticky="w")
        self.search_var = tk.StringVar()
        ttk.Entry(self, textvariable=self.search_var).grid(
            row=0, column=1, sticky="ew", padx=(4, 8)
        )

        self.filter_var = tk.StringVar(value=STATUS_FILTERS[0][1])
        ttk.Combobox(
            self,
            textvariable=self.filter_var,
            values=list(self._filters),
            state="readonly",
            width=12,
        ).grid(row=0, column=2, padx=(0, 8))

        self.sort_var = tk.StringVar(value=SORT_KEYS[0][1])
        ttk.Combobox(
            self,
            textvariable=self.sort_var,
            values=list(self._sorts),
            state="readonly",
            width=14,
        ).grid(row=0, column=3, padx=(0, 8))

        ttk.Button(self, text="Seed samples", command=self.controller.library_seed).grid(
            row=0, column=4, padx=(0, 6)
        )
        ttk.Button(self, text="Clear all", command=self.controller.library_clear).grid(
            row=0, column=5, padx=(0, 6)
        )

        self.sound_var = tk.BooleanVar(value=Config.SOUND_ENABLED)
        ttk.Checkbutton(self, text="Sound", variable=self.sound_var).grid(row=0, column=6)

        for var in (self.search_var, self.filter_var, self.sort_var):
            var.trace_add("write", lambda *_: self.controller.library.criteria_changed())

    def criteria(self) -> ViewCriteria:
        return ViewCriteria(
            search_text=self.search_var.get(),
            status_filter=self._filters.get(self.filter_var.get(), "all"),
            sort_key=self._sorts.get(self.sort_var.get(), SORT_KEYS[0][0]),
        )


# --------------------------------------------------------------------------- #
# Book list
# --------------------------------------------------------------------------- #
class BookListFrame(ttk.Frame):
    """Scrollable list of book cards, rebuilt from scratch on every refresh."""

    def __init__(self, master: tk.Misc, controller: "MainApplication"):
        super().__init__(master, padding=(12, 0, 12, 12))
        self.controller = controller
        self.photo_cache: Dict[str, tk.PhotoImage] = {}
        self.pending: Set[str] = set()
        self.failed: Set[str] = set()
        self.cover_labels: Dict[str, List[tk.Label]] = {}
        self._build_ui()

    def _build_ui(self) -> None:
        self.columnconfigure(0, weight=1)
        self.rowconfigure(1, weight=1)

        self.count_var = tk.StringVar(value="")
        ttk.Label(self, textvariable=self.count_var, foreground=MUTED).grid(
            row=0, column=0, sticky="w", pady=(0, 6)
        )

        self.list_canvas = tk.Canvas(self, highlightthickness=0, background=BACKGROUND)
        self.list_canvas.grid(row=1, column=0, sticky="nsew")
        scroll = ttk.Scrollbar(self, orient="vertical", command=self.list_canvas.yview)
        scroll.grid(row=1, column=1, sticky="ns")
        self.list_canvas.configure(yscrollcommand=scroll.set)

        self.cards_frame = tk.Frame(self.list_canvas, bg=BACKGROUND)
        self.cards_window = self.list_canvas.create_window(
            (0, 0), window=self.cards_frame, anchor="nw"
        )
        self.cards_frame.bind(
            "<Configure>",
            lambda _event: self.list_canvas.configure(
                scrollregion=self.list_canvas.bbox("all")
            ),
        )
        self.list_canvas.bind(
            "<Configure>",
            lambda event: self.list_canvas.itemconfigure(self.cards_window, width=event.width),
        )
        self.list_canvas.bind("<Enter>", self._bind_mousewheel)
        self.list_canvas.bind("<Leave>", self._unbind_mousewheel)

    # ------------------------------------------------------------------
    def rebuild(self, view: ListView) -> None:
        for child in self.cards_frame.winfo_children():
            child.destroy()
        self.cover_labels.clear()
        self.count_var.set(view.count_text)

        if view.empty:
            tk.Label(
                self.cards_frame,
                text=view.empty_text,
                bg=BACKGROUND,
                fg=MUTED,
                justify="center",
            ).pack(pady=24)
        for card in view.cards:
            self._create_card(card)

        self.cards_frame.update_idletasks()
        self.list_canvas.configure(scrollregion=self.list_canvas.bbox("all"))

    def _create_card(self, card: CardView) -> None:
        frame = tk.Frame(self.cards_frame, bg=CARD_BG, padx=10, pady=10)
        frame.pack(fill="x", pady=6)
        frame.columnconfigure(1, weight=1)

        cover = tk.Label(frame, bg="#4a4a4a", fg="#dcdcdc", font=("Helvetica", 9, "bold"))
        cover.grid(row=0, column=0, rowspan=3, sticky="nsw", padx=(0, 14))
        self._set_cover(cover, card)

        tk.Label(
            frame,
            text=truncate(card.title, 60),
            font=("Helvetica", 12, "bold"),
            bg=CARD_BG,
            fg=TEXT,
            anchor="w",
        ).grid(row=0, column=1, sticky="w")
        tk.Label(frame, text=card.summary, bg=CARD_BG, fg=MUTED, anchor="w").grid(
            row=1, column=1, sticky="w"
        )

        tags = tk.Frame(frame, bg=CARD_BG)
        tags.grid(row=2, column=1, sticky="w", pady=(4, 0))
        pill_bg, pill_fg = PILL_COLORS.get(card.status_pill, PILL_COLORS["pill"])
        tk.Label(tags, text=card.status_label, bg=pill_bg, fg=pill_fg, padx=8).pack(
            side="left", padx=(0, 6)
        )
        rating_bg, rating_fg = PILL_COLORS["pill"]
        tk.Label(tags, text=card.rating_text, bg=rating_bg, fg=rating_fg, padx=8).pack(
            side="left"
        )

        tools = tk.Frame(frame, bg=CARD_BG)
        tools.grid(row=0, column=2, rowspan=3, sticky="e")

        labels = [STATUS_LABELS[status] for status in STATUSES]
        status_var = tk.StringVar(value=card.status_label)
        status_box = ttk.Combobox(
            tools, textvariable=status_var, values=labels, state="readonly", width=11
        )
        status_box.pack(anchor="e")
        status_box.bind(
            "<<ComboboxSelected>>",
            lambda _event, book_id=card.book_id, var=status_var: self.controller.library.change_status(
                book_id, STATUSES[labels.index(var.get())]
            ),
        )

        stars = tk.Frame(tools, bg=CARD_BG)
        stars.pack(anchor="e", pady=6)
        for position in range(1, MAX_RATING + 1):
            filled = card.stars[position - 1]
            star = tk.Button(
                stars,
                text="★",
                relief="flat",
                bd=0,
                bg=CARD_BG,
                activebackground=CARD_BG,
                fg=STAR_ON if filled else STAR_OFF,
                font=("Helvetica", 14),
                cursor="hand2",
                command=lambda book_id=card.book_id, value=position: self.controller.library.rate(
                    book_id, value
                ),
            )
            star.pack(side="left")
            self._tooltip(star, star_title(position))

        ttk.Button(
            tools,
            text="Delete",
            command=lambda book_id=card.book_id: self.controller.library.delete(book_id),
        ).pack(anchor="e")

    def _tooltip(self, widget: tk.Widget, text: str) -> None:
        widget.bind("<Enter>", lambda _event: self.controller.set_status(text))
        widget.bind("<Leave>", lambda _event: self.controller.set_status(""))

    # ------------------------------------------------------------------
    # Covers
    # ------------------------------------------------------------------
    def _set_placeholder_image(self, label: tk.Label) -> None:
        label.configure(image="", text=NO_COVER_TEXT.replace(" ", "\n").upper(), width=8, height=5)
        label.image = None

    def _set_cover(self, label: tk.Label, card: CardView) -> None:
        url = card.cover_url
        if not url or url in self.failed:
            self._set_placeholder_image(label)
            return
        if url in self.photo_cache:
            self._apply_image(label, self.photo_cache[url])
            return
        self._set_placeholder_image(label)
        self.cover_labels.setdefault(url, []).append(label)
        if url not in self.pending:
            self.pending.add(url)
            threading.Thread(
                target=self._load_cover_background,
                args=(url,),
                daemon=True,
            ).start()

    def _load_cover_background(self, url: str) -> None:
        path: Optional[Path] = None
        try:
            path = fetch_and_cache_cover(url, url)
        finally:
            self.after(0, lambda: self._cover_loaded(url, path))

    def _cover_loaded(self, url: str, path: Optional[Path]) -> None:
        self.pending.discard(url)
        image = load_thumbnail(Path(path), COVER_SIZE) if path else None
        if image is None:
            self.failed.add(url)
            self.photo_cache.pop(url, None)
            return
        self.photo_cache[url] = image
        for label in self.cover_labels.get(url, []):
            if label.winfo_exists():
                self._apply_image(label, image)

    def _apply_image(self, label: tk.Label, image: tk.PhotoImage) -> None:
        label.configure(image=image, text="", width=COVER_SIZE[0], height=COVER_SIZE[1])
        label.image = image

    # ------------------------------------------------------------------
    def _bind_mousewheel(self, _event: tk.Event) -> None:
        self.list_canvas.bind_all("<MouseWheel>", self._on_mousewheel)
        self.list_canvas.bind_all("<Button-4>", self._on_mousewheel)
        self.list_canvas.bind_all("<Button-5>", self._on_mousewheel)

    def _unbind_mousewheel(self, _event: tk.Event) -> None:
        self.list_canvas.unbind_all("<MouseWheel>")
        self.list_canvas.unbind_all("<Button-4>")
        self.list_canvas.unbind_all("<Button-5>")

    def _on_mousewheel(self, event: tk.Event) -> None:
        delta = 0
        if event.delta:
            if sys.platform == "darwin":
                delta = -int(event.delta)
            else:
                delta = -int(event.delta / 120)
        elif event.num == 4:
            delta = -1
        elif event.num == 5:
            delta = 1
        if delta:
            self.list_canvas.yview_scroll(delta, "units")


# --------------------------------------------------------------------------- #
# Main application
# --------------------------------------------------------------------------- #
class MainApplication(tk.Tk):
    def __init__(self, db_path: Optional[Path] = None):
        super().__init__()
        self.title("Book Log")
        self.geometry("980x760")
        self.minsize(760, 560)
        self.configure(background=BACKGROUND)

        self.storage = SQLiteStorage(db_path)
        self.store = CollectionStore(self.storage)
        self.status_var = tk.StringVar(value="")

        self._build_ui()

    def _build_ui(self) -> None:
        self.form = BookForm(self, self)
        self.form.pack(fill="x")

        status_bar = ttk.Label(self, textvariable=self.status_var, anchor="w", padding=(8, 4))
        status_bar.pack(side="bottom", fill="x")

        self.list_frame = BookListFrame(self, self)
        self.toolbar = Toolbar(self, self)
        self.toolbar.pack(fill="x")
        self.list_frame.pack(fill="both", expand=True)

        self.toast = Toast(self)
        self.confetti = ConfettiCanvas(self)
        self.celebrations = CelebrationRunner(
            self.confetti,
            lambda frame: self.after(FRAME_MS, frame),
            sound_enabled=self.toolbar.sound_var.get,
            tone=ToneCue(lambda _frequency, _duration: self.bell()),
        )
        self.celebrations.attach(self.store)
        self.bind("<Configure>", self._on_resize)

        coordinator = RenderCoordinator(self.store, self.toolbar.criteria, self.list_frame)
        self.library = LibraryController(
            self.store,
            coordinator,
            confirm=lambda message: messagebox.askyesno("Book Log", message, parent=self),
            notify=self.toast.show,
        )

        self.protocol("WM_DELETE_WINDOW", self.on_close)
        coordinator.refresh()

    # ------------------------------------------------------------------
    def set_status(self, message: str) -> None:
        self.status_var.set(message)

    def library_seed(self) -> None:
        self.library.seed()

    def library_clear(self) -> None:
        self.library.clear()

    def _on_resize(self, event: tk.Event) -> None:
        if event.widget is self and self.celebrations.running:
            self.celebrations.resize(event.width, event.height)

    def on_close(self) -> None:
        try:
            self.storage.close()
        finally:
            self.destroy()


def main() -> None:
    logging.basicConfig(
        level=Config.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s"
    )
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.debug("Falling back to the default collation locale.")
    app = MainApplication()
    app.mainloop()


if __name__ == "__main__":
    main()
