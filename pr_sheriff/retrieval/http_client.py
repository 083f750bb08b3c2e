"""`gh api` transport, raw HTTP response parsing, and single-retry rate-limit backoff."""

from __future__ import annotations

import json
import math
import os
import re
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .config import (
    API_VERSION,
    BASE_URL,
    GH_BINARY,
    GH_MAX_OUTPUT_BYTES,
    GH_TIMEOUT_SEC,
    GITHUB_TOKEN,
    MAX_BACKOFF_SEC,
    USER_AGENT,
)
from .errors import (
    ResponseDecodeError,
    TransportOutputOverflow,
    TransportProcessFailure,
    TransportTimeout,
)

POLL_INTERVAL_SEC = 0.01
STATUS_LINE_RE = re.compile(r"HTTP/\S+\s+(\d+)")
HEADER_LINE_RE = re.compile(r"^([^:]+):\s*(.*)$")
LINK_URL_RE = re.compile(r"<([^>]+)>")
LINK_REL_RE = re.compile(r'rel="([^"]+)"')


@dataclass
class CommandResult:
    """Captured outcome of one `gh`-shaped invocation."""

    exit_code: int
    stdout: str
    stderr: str = ""
    timed_out: bool = False
    overflowed: bool = False


@dataclass
class RawHttpResponse:
    status: Optional[int]
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


Runner = Callable[[List[str]], CommandResult]


def describe_args(args: List[str]) -> str:
    """Render a command line for error messages, eliding GraphQL query text."""
    shown = ["query=<...>" if arg.startswith("query=") else arg for arg in args]
    return "gh " + " ".join(shown)


class GhCliRunner:
    """Run `gh` as a child process with a wall-clock timeout and an output cap.

    Output is spooled to temporary files and polled; exceeding either limit
    kills the child and flags the result instead of returning truncated data.
    """

    def __init__(self,
                 binary: str = GH_BINARY,
                 *,
                 timeout_sec: float = GH_TIMEOUT_SEC,
                 max_output_bytes: int = GH_MAX_OUTPUT_BYTES,
                 env: Optional[Dict[str, str]] = None) -> None:
        self.binary = binary
        self.timeout_sec = timeout_sec
        self.max_output_bytes = max_output_bytes
        self.env = env

    def __call__(self, args: List[str]) -> CommandResult:
        with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
            try:
                proc = subprocess.Popen(
                    [self.binary, *args],
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=err,
                    env=self.env if self.env is not None else os.environ.copy(),
                )
            except OSError as exc:
                # missing or non-executable binary; same exit code a shell reports
                return CommandResult(exit_code=127, stdout="", stderr=f"could not start {self.binary}: {exc}")
            deadline = time.monotonic() + self.timeout_sec
            timed_out = False
            overflowed = False
            while proc.poll() is None:
                if time.monotonic() >= deadline:
                    timed_out = True
                    proc.kill()
                    break
                if self._captured_bytes(out, err) > self.max_output_bytes:
                    overflowed = True
                    proc.kill()
                    break
                time.sleep(POLL_INTERVAL_SEC)
            exit_code = proc.wait()
            if not timed_out and self._captured_bytes(out, err) > self.max_output_bytes:
                overflowed = True

            out.seek(0)
            err.seek(0)
            return CommandResult(
                exit_code=exit_code,
                stdout=out.read().decode("utf-8", errors="replace"),
                stderr=err.read().decode("utf-8", errors="replace"),
                timed_out=timed_out,
                overflowed=overflowed,
            )

    @staticmethod
    def _captured_bytes(*handles) -> int:
        return sum(os.fstat(h.fileno()).st_size for h in handles)


def _typed_field_value(raw: str) -> Any:
    """Mirror `gh api -F` typing: booleans, null, and integers are converted."""
    if raw in ("true", "false"):
        return raw == "true"
    if raw == "null":
        return None
    if re.fullmatch(r"-?\d+", raw):
        return int(raw)
    return raw


def parse_gh_api_args(args: List[str]) -> Dict[str, Any]:
    """Decode a `gh api` argument vector into method, endpoint, fields, and headers."""
    if not args or args[0] != "api":
        raise ValueError(f"not a gh api invocation: {args!r}")

    method: Optional[str] = None
    endpoint: Optional[str] = None
    fields: Dict[str, Any] = {}
    headers: Dict[str, str] = {}
    i = 1
    while i < len(args):
        arg = args[i]
        if arg in ("--include", "-i"):
            i += 1
            continue
        if arg in ("-X", "--method"):
            method = args[i + 1].upper()
            i += 2
            continue
        if arg in ("-f", "--raw-field", "-F", "--field"):
            key, _, value = args[i + 1].partition("=")
            fields[key] = value if arg in ("-f", "--raw-field") else _typed_field_value(value)
            i += 2
            continue
        if arg in ("-H", "--header"):
            name, _, value = args[i + 1].partition(":")
            headers[name.strip()] = value.strip()
            i += 2
            continue
        if endpoint is None:
            endpoint = arg
        i += 1

    if endpoint is None:
        raise ValueError(f"gh api invocation without endpoint: {args!r}")
    if method is None:
        method = "POST" if fields else "GET"
    return {"method": method, "endpoint": endpoint, "fields": fields, "headers": headers}


class RequestsRunner:
    """Direct HTTPS substitute for `gh api --include` built on a requests.Session.

    Accepts the same argument vector and renders the response back into raw
    `HTTP/1.1 <status>` + headers + body text, so parsing and backoff are shared.
    """

    def __init__(self,
                 *,
                 token: Optional[str] = GITHUB_TOKEN,
                 base_url: str = BASE_URL,
                 session: Optional[requests.Session] = None,
                 timeout_sec: float = GH_TIMEOUT_SEC) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "User-Agent": USER_AGENT,
                "X-GitHub-Api-Version": API_VERSION,
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if endpoint == "graphql":
            return f"{self.base_url}/graphql"
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def __call__(self, args: List[str]) -> CommandResult:
        request = parse_gh_api_args(args)
        url = self._url_for(request["endpoint"])
        kwargs: Dict[str, Any] = {"headers": request["headers"] or None, "timeout": self.timeout_sec}
        fields = dict(request["fields"])
        if request["endpoint"] == "graphql":
            query = fields.pop("query", "")
            kwargs["json"] = {"query": query, "variables": fields}
        elif fields and request["method"] == "GET":
            kwargs["params"] = fields
        elif fields:
            kwargs["json"] = fields

        try:
            resp = self.session.request(request["method"], url, **kwargs)
        except requests.Timeout as exc:
            return CommandResult(exit_code=1, stdout="", stderr=str(exc), timed_out=True)
        except requests.RequestException as exc:
            return CommandResult(exit_code=1, stdout="", stderr=str(exc))

        lines = [f"HTTP/1.1 {resp.status_code} {resp.reason or ''}".rstrip()]
        lines.extend(f"{name}: {value}" for name, value in resp.headers.items())
        raw = "\r\n".join(lines) + "\r\n\r\n" + (resp.text or "")
        return CommandResult(exit_code=0 if resp.status_code < 400 else 1, stdout=raw)


def split_http_response(raw: str) -> Tuple[Optional[int], Dict[str, str], str]:
    """Split `--include` output into (status, lower-cased headers, body text)."""
    crlf = raw.find("\r\n\r\n")
    if crlf >= 0:
        idx, sep_len = crlf, 4
    else:
        idx, sep_len = raw.find("\n\n"), 2
    if idx < 0:
        return None, {}, raw

    header_lines = re.split(r"\r?\n", raw[:idx])
    body_text = raw[idx + sep_len:]

    match = STATUS_LINE_RE.search(header_lines[0] if header_lines else "")
    status = int(match.group(1)) if match else None

    headers: Dict[str, str] = {}
    for line in header_lines[1:]:
        m = HEADER_LINE_RE.match(line)
        if not m:
            continue
        headers[m.group(1).lower()] = m.group(2)
    return status, headers, body_text


def parse_http_response(raw: str) -> RawHttpResponse:
    status, headers, body_text = split_http_response(raw)
    if not body_text.strip():
        return RawHttpResponse(status=status, headers=headers, body=None)
    try:
        body = json.loads(body_text)
    except ValueError as exc:
        raise ResponseDecodeError(f"invalid JSON body (HTTP {status}): {exc}") from exc
    return RawHttpResponse(status=status, headers=headers, body=body)


def parse_link_header(link_header: Optional[str]) -> Dict[str, str]:
    """Map Link header relations (next, last, ...) to their URLs."""
    rels: Dict[str, str] = {}
    if not link_header:
        return rels
    for part in link_header.split(","):
        url_match = LINK_URL_RE.search(part)
        rel_match = LINK_REL_RE.search(part)
        if not url_match or not rel_match:
            continue
        rels[rel_match.group(1)] = url_match.group(1)
    return rels


def is_rate_limited(resp: RawHttpResponse) -> bool:
    if resp.status == 429:
        return True
    return resp.status == 403 and str(resp.headers.get("x-ratelimit-remaining", "")) == "0"


def _parse_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def rate_limit_wait_seconds(headers: Dict[str, str], now: float) -> Optional[float]:
    """Seconds to wait per `retry-after`, else the reset epoch; None when neither parses."""
    retry_after = _parse_number(headers.get("retry-after"))
    if retry_after is not None:
        return retry_after
    reset_epoch = _parse_number(headers.get("x-ratelimit-reset"))
    if reset_epoch is not None:
        return max(0.0, reset_epoch - math.floor(now))
    return None


def request_with_backoff(runner: Runner,
                         args: List[str],
                         *,
                         max_backoff_sec: float = MAX_BACKOFF_SEC,
                         sleep_fn: Callable[[float], None] = time.sleep,
                         clock: Callable[[], float] = time.time) -> RawHttpResponse:
    """Run one request, retrying once after a bounded sleep when rate limited."""
    for attempt in range(2):
        result = runner(args)
        if result.timed_out:
            raise TransportTimeout(f"gh timed out: {describe_args(args)}")
        if result.overflowed:
            raise TransportOutputOverflow(f"gh output exceeded limit: {describe_args(args)}")
        if result.exit_code != 0 and not result.stdout:
            raise TransportProcessFailure(
                f"gh failed (exit {result.exit_code}): {result.stderr.strip() or 'unknown error'}",
                exit_code=result.exit_code,
                stderr=result.stderr,
            )

        resp = parse_http_response(result.stdout)
        if attempt == 1 or not is_rate_limited(resp):
            return resp

        wait_sec = rate_limit_wait_seconds(resp.headers, clock())
        if wait_sec is None:
            return resp
        wait_sec = min(wait_sec, max_backoff_sec)
        print(f"[backoff {resp.status}] waiting {wait_sec:g}s for {describe_args(args)}")
        if wait_sec > 0:
            sleep_fn(wait_sec)

    raise RuntimeError("unexpected backoff loop state")


__all__ = [
    "CommandResult",
    "RawHttpResponse",
    "Runner",
    "GhCliRunner",
    "RequestsRunner",
    "describe_args",
    "parse_gh_api_args",
    "split_http_response",
    "parse_http_response",
    "parse_link_header",
    "is_rate_limited",
    "rate_limit_wait_seconds",
    "request_with_backoff",
]
