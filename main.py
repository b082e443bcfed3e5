import os
import secrets
import threading
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from app_logger import get_logger
from database import db, store
from schemas import ClassIn, Credentials, EditorAnswer, FormPatch, GradeIn, ResetConfirm
from workspace import Workspace

log = get_logger("api")

SESSION_COOKIE = "sid"

app = FastAPI(title="Registro de Ocorrências API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_workspaces: Dict[str, Workspace] = {}
_workspaces_lock = threading.Lock()

WORKSPACE_IDLE_SECONDS = float(os.getenv("WORKSPACE_IDLE_SECONDS", "1800"))


def _evict_idle() -> List[Workspace]:
    """Drop idle workspaces from the map; the caller closes them. Needs ``_workspaces_lock``."""
    idle = [sid for sid, ws in _workspaces.items() if ws.idle_for() > WORKSPACE_IDLE_SECONDS]
    return [_workspaces.pop(sid) for sid in idle]


def get_workspace(request: Request, response: Response) -> Workspace:
    sid = request.cookies.get(SESSION_COOKIE)
    with _workspaces_lock:
        evicted = _evict_idle()
        ws = _workspaces.get(sid) if sid else None
        if ws is None:
            sid = secrets.token_urlsafe(24)
            ws = Workspace(store)
            _workspaces[sid] = ws
            log.debug("Opened workspace %s (%d active)", sid[:6], len(_workspaces))
            response.set_cookie(SESSION_COOKIE, sid, httponly=True, samesite="lax")
        ws.touch()
    for old in evicted:
        with old.lock:
            old.close()
    if evicted:
        log.info("Closed %d idle workspace(s) (%d active)", len(evicted), len(_workspaces))
    return ws


def locked_workspace(ws: Workspace = Depends(get_workspace)):
    with ws.lock:
        yield ws


def signed_in_workspace(ws: Workspace = Depends(locked_workspace)) -> Workspace:
    if not ws.session.signed_in:
        raise HTTPException(status_code=401, detail="Faça login para continuar.")
    return ws


def _reply(ws: Workspace, **data: Any) -> Dict[str, Any]:
    return {"messages": ws.dialogs.drain(), **data}


def _state(ws: Workspace, **data: Any) -> Dict[str, Any]:
    return _reply(ws, **data, **ws.view())


@app.get("/")
def root():
    return {"message": "Registro de Ocorrências API"}


@app.get("/test")
def test_database():
    resp = {
        "backend": "✅ Running",
        "database": "❌ Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            resp["database"] = "✅ Connected"
            resp["collections"] = db.list_collection_names()
    except Exception as e:
        resp["error"] = str(e)
    return resp


@app.get("/state")
def get_state(ws: Workspace = Depends(locked_workspace)):
    return _state(ws)


# Authentication
@app.post("/auth/login")
def login(payload: Credentials, ws: Workspace = Depends(locked_workspace)):
    if not ws.session.login(payload.email, payload.password):
        raise HTTPException(status_code=400, detail=ws.session.login_error)
    return _state(ws)


@app.post("/auth/register")
def register(payload: Credentials, ws: Workspace = Depends(locked_workspace)):
    if not ws.session.register(payload.email, payload.password):
        raise HTTPException(status_code=400, detail=ws.session.login_error)
    return _state(ws)


@app.post("/auth/reset")
def reset_password(payload: Credentials, ws: Workspace = Depends(locked_workspace)):
    if not ws.session.reset_password(payload.email):
        raise HTTPException(status_code=400, detail=ws.session.login_error)
    return _reply(ws)


@app.post("/auth/reset/confirm")
def confirm_password_reset(payload: ResetConfirm, ws: Workspace = Depends(locked_workspace)):
    if not ws.session.confirm_password_reset(payload.token, payload.password):
        raise HTTPException(status_code=400, detail=ws.session.login_error)
    return _reply(ws)


@app.post("/auth/logout")
def logout(ws: Workspace = Depends(locked_workspace)):
    ws.session.logout()
    return _state(ws)


# Form
@app.post("/form/grade")
def change_grade(payload: GradeIn, ws: Workspace = Depends(signed_in_workspace)):
    ws.form.on_grade_change(payload.grade)
    return _state(ws)


@app.post("/form/class")
def change_class(payload: ClassIn, ws: Workspace = Depends(signed_in_workspace)):
    ws.form.on_class_change(payload.class_name)
    return _state(ws)


@app.patch("/form")
def update_form(payload: FormPatch, ws: Workspace = Depends(signed_in_workspace)):
    ws.form.set_fields(**payload.model_dump())
    return _state(ws)


@app.post("/form/submit")
def submit_form(ws: Workspace = Depends(signed_in_workspace)):
    record_id = ws.form.submit()
    if record_id is None:
        # only the failure message becomes the detail; earlier alerts stay queued
        detail = ws.dialogs.messages.pop() if ws.dialogs.messages else "Registro não salvo."
        raise HTTPException(status_code=400, detail=detail)
    return _state(ws, id=record_id)


@app.post("/form/clear")
def clear_form(ws: Workspace = Depends(signed_in_workspace)):
    ws.form.clear()
    return _state(ws)


# Records
@app.get("/records")
def list_records(q: Optional[str] = None, ws: Workspace = Depends(signed_in_workspace)):
    return _reply(ws, records=ws.feed.filter(ws.form.search if q is None else q))


@app.get("/records/html", response_class=HTMLResponse)
def render_records(q: Optional[str] = None, ws: Workspace = Depends(signed_in_workspace)):
    return ws.feed.render(ws.form.search if q is None else q)


@app.delete("/records/{record_id}")
def delete_record(record_id: str, confirm: bool = False, ws: Workspace = Depends(signed_in_workspace)):
    ws.dialogs.expect(confirm=confirm)
    return _reply(ws, deleted=ws.feed.delete_record(record_id))


# Admin editors: the edited text arrives with the request, null cancels
@app.put("/admin/subjects")
def edit_subjects(payload: EditorAnswer, ws: Workspace = Depends(signed_in_workspace)):
    ws.dialogs.expect(text=payload.text)
    return _state(ws, saved=ws.admin.edit_subjects())


@app.put("/admin/occurrences")
def edit_occurrences(payload: EditorAnswer, ws: Workspace = Depends(signed_in_workspace)):
    ws.dialogs.expect(text=payload.text)
    return _state(ws, saved=ws.admin.edit_occurrence_types())


@app.put("/admin/students")
def edit_students(payload: EditorAnswer, ws: Workspace = Depends(signed_in_workspace)):
    ws.dialogs.expect(text=payload.text)
    return _state(ws, saved=ws.admin.edit_roster())


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
