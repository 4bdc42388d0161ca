"""File watcher for automatic ingestion."""

import threading
import time
from pathlib import Path

from rich.console import Console
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .ingest.extract import raw_from_file
from .ingest.parsers import PARSERS
from .services import LOCAL_CONNECTOR_ID, Services, ensure_local_connector

console = Console()


class IngestHandler(FileSystemEventHandler):
    """Collects file events and debounces them."""

    def __init__(self, debounce: float = 5.0):
        super().__init__()
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._debounce = debounce
        self._callback = None

    def set_callback(self, callback):
        self._callback = callback

    def _is_supported(self, path: str) -> bool:
        name = Path(path).name
        return Path(path).suffix.lower() in PARSERS and not name.startswith(".")

    def on_created(self, event):
        if not event.is_directory and self._is_supported(event.src_path):
            self._add(event.src_path)

    def on_modified(self, event):
        if not event.is_directory and self._is_supported(event.src_path):
            self._add(event.src_path)

    def on_moved(self, event):
        # Editors save by renaming a temp file over the target
        dest = getattr(event, "dest_path", "")
        if not event.is_directory and dest and self._is_supported(dest):
            self._add(dest)

    def on_deleted(self, event):
        with self._lock:
            self._pending.discard(event.src_path)

    def _add(self, path: str):
        with self._lock:
            self._pending.add(path)
            console.print(f"  [dim]Detected: {Path(path).name}[/]")
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def _flush(self):
        with self._lock:
            paths = sorted(self._pending)
            self._pending.clear()
        if paths and self._callback:
            self._callback(paths)


class FileWatcher:
    """Watches the ingest directory and ingests new or changed files."""

    def __init__(self, services: Services, tenant_id: str, debounce: float = 5.0):
        self.services = services
        self.tenant_id = tenant_id
        self.ingest_path = Path(services.config["ingest_path"])
        self.handler = IngestHandler(debounce=debounce)
        self.handler.set_callback(self._process_batch)
        self.observer = Observer()
        self.stop_event = threading.Event()

    def _process_batch(self, paths: list[str]):
        """Run the pipeline on a batch of detected files."""
        console.print(f"\n[bold blue]Processing {len(paths)} file(s)...[/]")
        ensure_local_connector(self.services.records, self.tenant_id)

        raws = []
        for p in paths:
            path = Path(p)
            if not path.is_file():
                # Deleted or renamed before the debounce fired
                continue
            raws.append(raw_from_file(path))

        result = self.services.pipeline.process_batch(
            raws,
            self.tenant_id,
            connector_id=LOCAL_CONNECTOR_ID,
            connector_type="manual_upload",
            cancel_event=self.stop_event,
        )
        for error in result.errors:
            console.print(f"  [red]✗ {error['title']}: {error['error']}[/]")
        console.print(
            f"[bold green]✓ Batch complete: {result.succeeded} ingested, "
            f"{result.failed} failed, {result.total_chunks} chunk(s)[/]\n"
        )
        if result.cancelled:
            console.print(f"[yellow]Stopped early, {result.skipped} file(s) left for the next run[/]")
        else:
            console.print("[dim]Watching for more files...[/]")

    def stop(self):
        """Stop watching; a batch in progress finishes its current file and skips the rest."""
        self.stop_event.set()
        self.observer.stop()

    def run(self):
        """Start watching (blocks until Ctrl+C)."""
        self.ingest_path.mkdir(parents=True, exist_ok=True)
        self.observer.schedule(self.handler, str(self.ingest_path), recursive=True)
        self.observer.start()

        console.print(f"[bold]Watching {self.ingest_path} for new files... (Ctrl+C to stop)[/]")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping watcher...[/]")
            self.stop()
        self.observer.join()
        console.print("[green]✓ Watcher stopped.[/]")
