"""File manager API blueprint.

Exposes the sandboxed file operations under ``<base_path>/api/*``. Routes are
thin: they parse request arguments, call ``FileManager`` and turn results or
``FileManagerError`` into JSON.
"""

from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import quote as _url_quote

from flask import Blueprint, Response, jsonify, request, send_file

from .services.errors import FileManagerError
from .services.file_manager import FileManager
from .services.logging_setup import core_log


def error_response(message: str, status: int = 400, *, ok: bool | None = None, **extra: Any) -> Any:
    payload: Dict[str, Any] = {"error": message}
    if ok is not None:
        payload["ok"] = ok
    payload.update(extra)
    return jsonify(payload), status


def _truthy(v: Any) -> bool:
    return str(v or "").strip().lower() in ("1", "true", "yes", "on")


def _sanitize_download_filename(name: str, *, default: str = "download") -> str:
    """Sanitize filename for Content-Disposition header (prevent header injection)."""
    s = (name or "").replace("\r", "").replace("\n", "").replace('"', "").strip()
    if not s:
        s = default
    return s[:180]


def _content_disposition_attachment(filename: str) -> str:
    fn = _sanitize_download_filename(filename)
    fn_star = _url_quote(fn, safe="")
    return f"attachment; filename=\"{fn}\"; filename*=UTF-8''{fn_star}"


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def create_files_blueprint(manager: FileManager) -> Blueprint:
    """Create the /api/* blueprint bound to ``manager``."""

    bp = Blueprint("files", __name__)
    config = manager.config

    @bp.errorhandler(FileManagerError)
    def _handle_fm_error(e: FileManagerError) -> Any:
        if e.status >= 500:
            core_log("error", "api.error", endpoint=request.endpoint, code=e.code, message=e.message)
        payload = e.to_dict()
        payload["ok"] = False
        return jsonify(payload), e.status

    @bp.get("/api/test")
    def api_test() -> Any:
        return jsonify({"ok": True, "message": "API is working"})

    @bp.get("/api/files")
    def api_files() -> Any:
        rel, entries = manager.list_directory(request.args.get("path", "") or "")
        files = []
        for e in entries:
            item = e.to_dict()
            item["path"] = f"{rel}/{e.name}" if rel else e.name
            item["isDirectory"] = e.is_dir
            files.append(item)
        return jsonify({"ok": True, "files": files, "currentPath": rel})

    @bp.post("/api/upload")
    def api_upload() -> Any:
        uploads = request.files.getlist("files")
        if not uploads:
            return error_response("file_required", 400, ok=False)
        if len(uploads) > config.max_upload_files:
            return error_response("too_many_files", 400, ok=False, max_files=config.max_upload_files)

        dest = request.form.get("path", "") or ""
        extract = _truthy(request.form.get("extract"))
        relative_paths: List[str] = []
        if _truthy(request.form.get("preserveStructure")):
            relative_paths = request.form.getlist("relativePaths")

        stored = []
        for i, f in enumerate(uploads):
            rel_path = relative_paths[i] if i < len(relative_paths) else None
            result = manager.upload(
                dest,
                f.stream,
                f.filename or "",
                extract=extract,
                relative_path=rel_path or None,
            )
            stored.append(result.to_dict())
        return jsonify({"ok": True, "message": "Files uploaded successfully", "files": stored})

    @bp.get("/api/download")
    def api_download() -> Any:
        paths = request.args.getlist("files")
        if not paths:
            return error_response("files_required", 400, ok=False)
        payload = manager.download(paths)
        if not payload.is_archive:
            return send_file(
                payload.path,
                mimetype=payload.content_type,
                as_attachment=True,
                download_name=payload.filename,
            )
        headers = {
            "Content-Disposition": _content_disposition_attachment(payload.filename),
            "Cache-Control": "no-store",
        }
        return Response(payload.chunks, mimetype=payload.content_type, headers=headers)

    @bp.post("/api/rename")
    def api_rename() -> Any:
        data = request.get_json(silent=True) or {}
        old_path = str(data.get("oldPath") or "")
        new_name = str(data.get("newName") or "")
        if not old_path:
            return error_response("path_required", 400, ok=False)
        new_path = manager.rename_or_move(old_path, new_name)
        return jsonify({"ok": True, "message": "Renamed successfully", "path": new_path})

    @bp.delete("/api/delete")
    def api_delete() -> Any:
        data = request.get_json(silent=True) or {}
        paths = _as_list(data.get("files"))
        if not paths:
            return error_response("files_required", 400, ok=False)
        return jsonify(manager.delete_many(paths).to_dict())

    @bp.post("/api/purge-all")
    def api_purge_all() -> Any:
        return jsonify(manager.purge_all().to_dict())

    @bp.post("/api/mkdir")
    def api_mkdir() -> Any:
        data = request.get_json(silent=True) or {}
        parent = str(data.get("path") or "")
        name = str(data.get("name") or "")
        rel = manager.create_directory(f"{parent}/{name}" if name else "")
        return jsonify({"ok": True, "message": "Directory created successfully", "path": rel})

    @bp.post("/api/create-file")
    def api_create_file() -> Any:
        data = request.get_json(silent=True) or {}
        content = data.get("content", "")
        if not isinstance(content, str):
            return error_response("content_must_be_string", 400, ok=False)
        rel = manager.create_file(str(data.get("path") or ""), str(data.get("name") or ""), content)
        return jsonify({"ok": True, "message": "File created successfully", "path": rel})

    @bp.get("/api/read-file")
    def api_read_file() -> Any:
        path = request.args.get("path", "") or ""
        if not path:
            return error_response("path_required", 400, ok=False)
        content = manager.read_text(path, config.max_edit_bytes)
        return jsonify({"ok": True, "content": content})

    @bp.post("/api/save-file")
    def api_save_file() -> Any:
        data = request.get_json(silent=True) or {}
        content = data.get("content")
        if not isinstance(content, str):
            return error_response("content_must_be_string", 400, ok=False)
        path = str(data.get("path") or "")
        if not path:
            return error_response("path_required", 400, ok=False)
        rel = manager.write_file(path, content)
        return jsonify({"ok": True, "message": "File saved successfully", "path": rel})

    return bp
