"""Upload of coverage results to a coveralls endpoint."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

import requests

from covreport.model import ReportConfig, ReportError, TraceMap

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://coveralls.io/api/v1/jobs"
TRAVIS = "travis-ci"
_TIMEOUT = 60


@dataclass(frozen=True)
class _ServiceEnv:
    flag: str
    job_id: str
    number: str | None = None
    build_url: str | None = None
    branch: str | None = None
    pull_request: str | None = None


_SERVICES = {
    TRAVIS: _ServiceEnv("TRAVIS", "TRAVIS_JOB_ID", "TRAVIS_BUILD_NUMBER", None,
                        "TRAVIS_BRANCH", "TRAVIS_PULL_REQUEST"),
    "travis-pro": _ServiceEnv("TRAVIS", "TRAVIS_JOB_ID", "TRAVIS_BUILD_NUMBER", None,
                              "TRAVIS_BRANCH", "TRAVIS_PULL_REQUEST"),
    "circle-ci": _ServiceEnv("CIRCLECI", "CIRCLE_BUILD_NUM", "CIRCLE_BUILD_NUM",
                             "CIRCLE_BUILD_URL", "CIRCLE_BRANCH", None),
    "semaphore": _ServiceEnv("SEMAPHORE", "SEMAPHORE_BUILD_NUMBER", "SEMAPHORE_BUILD_NUMBER",
                             None, "BRANCH_NAME", "PULL_REQUEST_NUMBER"),
    "jenkins": _ServiceEnv("JENKINS_URL", "BUILD_ID", "BUILD_NUMBER", "BUILD_URL",
                           "GIT_BRANCH", "ghprbPullId"),
    "github": _ServiceEnv("GITHUB_ACTIONS", "GITHUB_RUN_ID", "GITHUB_RUN_NUMBER", None,
                          "GITHUB_REF", None),
}


@dataclass
class GitInfo:
    """The commit and branch a coverage run was made on."""

    id: str
    author_name: str
    author_email: str
    committer_name: str
    committer_email: str
    message: str
    branch: str
    remotes: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "head": {
                "id": self.id,
                "author_name": self.author_name,
                "author_email": self.author_email,
                "committer_name": self.committer_name,
                "committer_email": self.committer_email,
                "message": self.message,
            },
            "branch": self.branch,
            "remotes": list(self.remotes),
        }


class _GitError(Exception):
    pass


def _git(directory: Path, *args: str) -> bytes:
    try:
        completed = subprocess.run(
            ["git", "-C", str(directory), *args], capture_output=True, check=False
        )
    except OSError as exc:
        raise _GitError(str(exc)) from exc
    if completed.returncode != 0:
        raise _GitError(completed.stderr.decode("utf-8", errors="replace").strip())
    return completed.stdout


def _utf8(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ReportError("string is not valid utf-8") from exc


def get_git_info(manifest_path) -> GitInfo:
    """Collect the head commit and branch of the repository holding the manifest."""
    manifest_path = Path(manifest_path)
    dir_path = manifest_path.parent
    if dir_path == manifest_path:
        raise ReportError(f"failed to get parent for path: {manifest_path}")
    try:
        _git(dir_path, "rev-parse", "--git-dir")
    except _GitError as exc:
        raise ReportError(f"failed to open git repository: {dir_path}: {exc}") from exc
    try:
        _git(dir_path, "rev-parse", "--verify", "HEAD")
    except _GitError as exc:
        raise ReportError(f"failed to get repository head: {exc}") from exc
    try:
        branch = _utf8(_git(dir_path, "symbolic-ref", "--short", "-q", "HEAD")).strip()
    except _GitError as exc:
        raise ReportError(f"failed to get branch name: {exc}") from exc
    try:
        raw = _git(
            dir_path, "log", "-1", "--pretty=format:%H%x00%an%x00%ae%x00%cn%x00%ce%x00%B", "HEAD"
        )
    except _GitError as exc:
        raise ReportError(f"failed to get commit: {exc}") from exc
    parts = raw.split(b"\x00", 5)
    if len(parts) != 6:
        raise ReportError("failed to get commit: unexpected log output")
    commit_id, author_name, author_email, committer_name, committer_email, message = (
        _utf8(part) for part in parts
    )
    return GitInfo(
        id=commit_id,
        author_name=author_name,
        author_email=author_email,
        committer_name=committer_name,
        committer_email=committer_email,
        message=message,
        branch=branch,
    )


def _service_from_env(name: str) -> dict | None:
    spec = _SERVICES.get(name)
    if spec is None:
        return None
    job_id = os.environ.get(spec.job_id)
    if job_id is None:
        return None
    fields = {
        "service_name": name,
        "service_job_id": job_id,
        "service_number": os.environ.get(spec.number) if spec.number else None,
        "service_build_url": os.environ.get(spec.build_url) if spec.build_url else None,
        "service_branch": os.environ.get(spec.branch) if spec.branch else None,
        "service_pull_request": os.environ.get(spec.pull_request) if spec.pull_request else None,
    }
    return {key: value for key, value in fields.items() if value is not None}


def _with_token(token: str, service: dict) -> dict:
    identity = {"repo_token": token} if token else {}
    identity.update(service)
    return identity


def get_identity(ci_tool: str | None, key: str) -> dict:
    """The identity fields of the upload: repository token and CI service."""
    if ci_tool is not None:
        service = _service_from_env(ci_tool) or {
            "service_name": ci_tool,
            "service_job_id": key,
        }
        token = "" if ci_tool == TRAVIS else key
        return _with_token(token, service)
    for name, spec in _SERVICES.items():
        if spec.flag in os.environ:
            service = _service_from_env(name)
            if service is not None:
                return _with_token(key, service)
    return {"repo_token": key}


def _line_count(text: str) -> int:
    count = text.count("\n")
    if text and not text.endswith("\n"):
        count += 1
    return count


def _source_file(name: str, path: Path, lines: dict[int, int]) -> dict | None:
    try:
        data = path.read_bytes()
        text = data.decode("utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    return {
        "name": name,
        "source_digest": hashlib.md5(data).hexdigest(),
        "coverage": [lines.get(number) for number in range(1, _line_count(text) + 1)],
    }


def build_payload(coverage_data: TraceMap, config: ReportConfig) -> dict:
    """The job description sent to the endpoint, without git information."""
    if config.coveralls is None:
        raise ReportError("No coveralls key specified.")
    payload = get_identity(config.ci_tool, config.coveralls)
    sources = []
    for file in coverage_data.files():
        lines: dict[int, int] = {}
        for trace in coverage_data.get_child_traces(file):
            if trace.stats.is_line:
                lines[trace.line] = trace.stats.hits
            else:
                logger.info(
                    "Support for coverage statistic not implemented or supported for coveralls.io"
                )
        if lines:
            source = _source_file(str(config.strip_base_dir(file)), file, lines)
            if source is not None:
                sources.append(source)
    payload["source_files"] = sources
    return payload


def export(coverage_data: TraceMap, config: ReportConfig) -> None:
    """Send the coverage data to coveralls or to the configured endpoint."""
    payload = build_payload(coverage_data, config)
    try:
        payload["git"] = get_git_info(config.manifest).to_dict()
        logger.info("Git info collected")
    except ReportError as exc:
        logger.warning("Failed to collect git info: %s", exc)

    text = json.dumps(payload)
    url = config.report_uri or DEFAULT_ENDPOINT
    if config.report_uri:
        logger.info("Sending report to endpoint: %s", url)
    else:
        logger.info("Sending coverage data to coveralls.io")
    error: requests.RequestException | None = None
    response = None
    try:
        response = requests.post(
            url,
            files={"json_file": ("coveralls.json", text, "application/json")},
            timeout=_TIMEOUT,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        error = exc

    if config.debug:
        logger.info("Attempting to write coveralls report to coveralls.json")
        try:
            (config.output_dir / "coveralls.json").write_text(text, encoding="utf-8")
        except OSError:
            pass

    if error is not None:
        raise ReportError(f"Coveralls send failed. {error}") from error
    logger.debug("Coveralls response %r", response)