from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from app_logger import get_logger
from database import StoreError

log = get_logger("feed")

RECORDS_COLLECTION = "records"
FEED_LIMIT = 1000

_HTML_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#039;"}


def escape_html(value: Any) -> str:
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in str(value))


def format_timestamp(value: Any) -> str:
    """Short local date/time, e.g. ``05/03/2025 14:30``."""
    if not isinstance(value, datetime):
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone().strftime("%d/%m/%Y %H:%M")


def filter_records(records: List[Dict[str, Any]], text: Optional[str]) -> List[Dict[str, Any]]:
    term = (text or "").strip().lower()
    if not term:
        return list(records)
    return [r for r in records if term in (r.get("student") or "").lower()]


def render_record(r: Dict[str, Any]) -> str:
    meta = f"{escape_html(r.get('grade', ''))}ª {escape_html(r.get('class_name', ''))} · {escape_html(r.get('subject') or '-')}"
    if r.get("created_at"):
        meta += f" · {format_timestamp(r['created_at'])}"
    if r.get("created_by_email"):
        meta += f" · por {escape_html(r['created_by_email'])}"

    tags = " ".join(f'<span class="tag">{escape_html(o)}</span>' for o in r.get("occurrences") or []) or "<span class='muted'>Sem marcações</span>"
    note = f"<div><strong>Obs.:</strong> {escape_html(r['note'])}</div>" if r.get("note") else ""
    return (
        '<div class="item">'
        f'<h3 style="margin:0 0 6px;">{escape_html(r.get("student", ""))}</h3>'
        f'<div class="meta">{meta}</div>'
        f'<div class="tags">{tags}</div>'
        f"{note}"
        '<div class="row" style="margin-top:8px;">'
        f'<button class="btn small ghost" data-del="{escape_html(r.get("id", ""))}">Excluir</button>'
        "</div></div>"
    )


class RecordFeed:
    """Most recent records, kept current by a live query."""

    def __init__(self, store, dialogs) -> None:
        self._store = store
        self._dialogs = dialogs
        self._subscription = None
        self._generation = 0
        self.records: List[Dict[str, Any]] = []

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def subscribe(self) -> None:
        self.unsubscribe()
        generation = self._generation

        def on_snapshot(records: List[Dict[str, Any]]) -> None:
            # late deliveries from a cancelled query are dropped
            if generation == self._generation:
                self.records = list(records)

        def on_error(error: StoreError) -> None:
            if generation == self._generation:
                self._on_error(error)

        self._subscription = self._store.watch(
            RECORDS_COLLECTION,
            on_snapshot,
            on_error,
            sort=[("created_at", DESCENDING)],
            limit=FEED_LIMIT,
        )

    def unsubscribe(self) -> None:
        self._generation += 1
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def reset(self) -> None:
        self.unsubscribe()
        self.records = []

    def _on_error(self, error: StoreError) -> None:
        log.error("Record feed failed: %s", error)
        self._dialogs.alert("Erro ao carregar registros. Verifique as permissões do banco de dados.")

    def filter(self, text: Optional[str] = None) -> List[Dict[str, Any]]:
        return filter_records(self.records, text)

    def render(self, text: Optional[str] = None) -> str:
        matches = self.filter(text)
        if not matches:
            return "<p class='muted'>Nenhum registro encontrado.</p>"
        return "\n".join(render_record(r) for r in matches)

    def delete_record(self, record_id: str) -> bool:
        """Delete after confirmation. The live query reflects the removal."""
        if not self._dialogs.confirm("Excluir este registro?"):
            return False
        try:
            deleted = self._store.delete_document(RECORDS_COLLECTION, record_id)
        except StoreError as e:
            log.error("Deleting record %s failed: %s", record_id, e)
            self._dialogs.alert("Erro ao excluir o registro.")
            return False
        if deleted:
            log.info("Record %s deleted", record_id)
        return deleted
