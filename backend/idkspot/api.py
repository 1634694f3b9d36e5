import json
import logging
import os
import time
import uuid
from http.server import BaseHTTPRequestHandler
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

from idkspot.blocklist import normalize_mac

log = logging.getLogger("idkspot.api")

SERVER_VERSION = "idkspotd/0.2"

_START_KEYS = {"ssid", "password"}
_MAC_KEYS = {"mac"}


class APIHandler(BaseHTTPRequestHandler):
    """
    Loopback JSON API standing in for the desktop window. The server object
    carries `controller` (HotspotController) and `app_state` (AppState).
    """

    server_version = SERVER_VERSION

    def log_message(self, format, *args):
        return

    @property
    def controller(self):
        return self.server.controller

    @property
    def app_state(self):
        return self.server.app_state

    def _path(self) -> str:
        return urlsplit(self.path).path or "/"

    def _env_token(self) -> str:
        return (os.environ.get("IDKSPOT_API_TOKEN") or "").strip()

    def _get_req_token(self) -> str:
        t = (self.headers.get("X-Api-Token") or "").strip()
        if t:
            return t
        auth = (self.headers.get("Authorization") or "").strip()
        if auth.lower().startswith("bearer "):
            return auth.split(" ", 1)[1].strip()
        return ""

    def _is_authorized(self) -> bool:
        tok = self._env_token()
        if not tok:
            return True
        return self._get_req_token() == tok

    def _require_auth(self, cid: str) -> bool:
        if self._is_authorized():
            return True
        self._respond(
            401,
            self._envelope(
                correlation_id=cid,
                result_code="unauthorized",
                warnings=["missing_or_invalid_token"],
            ),
        )
        return False

    def _respond_raw(self, code: int, raw: bytes, content_type: str):
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(raw)))
        self.send_header("Cache-Control", "no-store")
        self.send_header("X-Content-Type-Options", "nosniff")
        self.end_headers()
        try:
            self.wfile.write(raw)
        except (BrokenPipeError, ConnectionResetError):
            return

    def _respond(self, code: int, payload: dict):
        raw = json.dumps(payload).encode("utf-8")
        self._respond_raw(code, raw, "application/json; charset=utf-8")

    def _envelope(self, *, correlation_id: str, result_code: str = "ok", data=None, warnings=None):
        return {
            "correlation_id": correlation_id,
            "result_code": result_code,
            "warnings": warnings or [],
            "data": data or {},
        }

    def _cid(self) -> str:
        cid = self.headers.get("X-Correlation-Id")
        return cid.strip() if cid and cid.strip() else str(uuid.uuid4())

    def _read_json_body(self) -> Tuple[Dict[str, Any], list]:
        warnings: list = []
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except Exception:
            length = 0

        if length <= 0:
            return {}, warnings
        if length > 64_000:
            warnings.append("body_too_large")
            return {}, warnings

        try:
            raw = self.rfile.read(length)
        except Exception:
            warnings.append("body_read_failed")
            return {}, warnings

        try:
            data = json.loads(raw.decode("utf-8", "replace"))
        except Exception:
            warnings.append("body_json_parse_failed")
            return {}, warnings
        if not isinstance(data, dict):
            warnings.append("body_not_object")
            return {}, warnings
        return data, warnings

    def _filter_keys(self, data: Dict[str, Any], allow: set) -> Tuple[Dict[str, Any], list]:
        out = {k: v for k, v in (data or {}).items() if k in allow}
        ignored = sorted(k for k in (data or {}) if k not in allow)
        return out, (["ignored_keys:" + ",".join(ignored)] if ignored else [])

    def _mac_from_body(self, body: Dict[str, Any]) -> Optional[str]:
        try:
            return normalize_mac(str(body.get("mac") or ""))
        except ValueError:
            return None

    def do_GET(self):
        cid = self._cid()
        path = self._path()

        if path == "/healthz":
            self._respond_raw(200, b"ok\n", "text/plain; charset=utf-8")
            return

        log.info("request", extra={"correlation_id": cid, "method": "GET", "path": path})
        if not self._require_auth(cid):
            return

        if path == "/v1/status":
            data = self.controller.status()
            data["app"] = self.app_state.as_dict()
            self._respond(200, self._envelope(correlation_id=cid, data=data))
            return

        if path == "/v1/clients":
            self._respond(200, self._envelope(correlation_id=cid, data=self.controller.clients()))
            return

        if path == "/v1/blocklist":
            data = {"blocked": self.controller.blocked()}
            self._respond(200, self._envelope(correlation_id=cid, data=data))
            return

        if path == "/v1/info":
            data = {
                "server_version": SERVER_VERSION,
                "ts": int(time.time()),
                "pid": os.getpid(),
                "token_configured": bool(self._env_token()),
            }
            self._respond(200, self._envelope(correlation_id=cid, data=data))
            return

        self._respond(
            404,
            self._envelope(correlation_id=cid, result_code="not_found", warnings=["unknown_endpoint"]),
        )

    def do_POST(self):
        cid = self._cid()
        path = self._path()
        log.info("request", extra={"correlation_id": cid, "method": "POST", "path": path})

        if not self._require_auth(cid):
            return

        body, body_warnings = self._read_json_body()

        if path == "/v1/start":
            params, warnings = self._filter_keys(body, _START_KEYS)
            ssid = params.get("ssid")
            if ssid is None:
                ssid = self.controller.cfg.get("ssid") or ""
            res = self.controller.start(str(ssid), str(params.get("password") or ""), correlation_id=cid)
            self._respond(
                200 if res.ok else 400,
                self._envelope(
                    correlation_id=cid,
                    result_code=res.code,
                    data={"message": res.message, "status": res.state},
                    warnings=body_warnings + warnings,
                ),
            )
            return

        if path == "/v1/stop":
            res = self.controller.stop(correlation_id=cid)
            self._respond(
                200,
                self._envelope(
                    correlation_id=cid,
                    result_code=res.code,
                    data={"message": res.message, "status": res.state},
                    warnings=body_warnings,
                ),
            )
            return

        if path in ("/v1/block", "/v1/unblock"):
            params, warnings = self._filter_keys(body, _MAC_KEYS)
            mac = self._mac_from_body(params)
            if mac is None:
                self._respond(
                    400,
                    self._envelope(
                        correlation_id=cid,
                        result_code="invalid_mac",
                        warnings=body_warnings + warnings,
                    ),
                )
                return

            if path == "/v1/block":
                outcome = self.controller.block(mac)
                data = {
                    "mac": outcome.mac,
                    "method": outcome.method,
                    "enforced": outcome.enforced,
                    "attempts": outcome.attempts,
                }
                code = "blocked" if outcome.enforced else "blocked_not_enforced"
            else:
                warnings = warnings + self.controller.unblock(mac)
                data = {"mac": mac}
                code = "unblocked"

            self._respond(
                200,
                self._envelope(
                    correlation_id=cid,
                    result_code=code,
                    data=data,
                    warnings=body_warnings + warnings,
                ),
            )
            return

        if path in ("/v1/window/show", "/v1/window/hide"):
            self.app_state.set_show_window(path.endswith("/show"))
            self._respond(200, self._envelope(correlation_id=cid, data=self.app_state.as_dict()))
            return

        if path == "/v1/quit":
            self.app_state.request_quit()
            self._respond(200, self._envelope(correlation_id=cid, result_code="quitting"))
            return

        self._respond(
            404,
            self._envelope(correlation_id=cid, result_code="not_found", warnings=["unknown_endpoint"]),
        )
