"""
Execution Dispatcher
Runs learner code on the remote sandbox (JDoodle compatible execute API)

- Language mapping is checked before any remote call
- Transient failures (network, 5xx, 429) retry with jittered exponential backoff
- A call that outlives its deadline is a TIMEOUT and is never retried
- Every attempt holds a slot of the process-wide ConcurrencyLimiter
"""

import logging
import random
import time
from typing import Callable, Dict, Optional, Tuple

import httpx

from codejudge.assessment import config
from codejudge.assessment.errors import UnsupportedLanguage
from codejudge.assessment.limiter import ConcurrencyLimiter, get_shared_limiter
from codejudge.assessment.models import ExecutionRequest, ExecutionResult, ExecutionStatus

logger = logging.getLogger(__name__)


class _TransientFailure(Exception):
    """Retryable sandbox failure; never leaves this module"""


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _to_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class JudgeDispatcher:
    """Owns every interaction with the remote execution sandbox"""

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        limiter: Optional[ConcurrencyLimiter] = None,
        api_url: str = config.JUDGE_API_URL,
        client_id: str = config.JUDGE_CLIENT_ID,
        client_secret: str = config.JUDGE_CLIENT_SECRET,
        language_versions: Optional[Dict[str, Tuple[str, str]]] = None,
        max_attempts: int = config.JUDGE_MAX_ATTEMPTS,
        request_timeout: float = config.JUDGE_REQUEST_TIMEOUT_SECONDS,
        backoff_base: float = config.JUDGE_BACKOFF_BASE_SECONDS,
        backoff_cap: float = config.JUDGE_BACKOFF_CAP_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client()
        self.limiter = limiter or get_shared_limiter()
        self.api_url = api_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.language_versions = dict(language_versions or config.LANGUAGE_VERSIONS)
        self.max_attempts = max_attempts
        self.request_timeout = request_timeout
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._sleep = sleep
        self._clock = clock

    def close(self):
        if self._owns_client:
            self._client.close()

    # ==================== REQUEST CONSTRUCTION ====================

    def supports(self, language: str) -> bool:
        return language.lower() in self.language_versions

    def resolve_language(self, language: str) -> Tuple[str, str]:
        """Platform language -> (sandbox language, version index)

        Raises:
            UnsupportedLanguage: no mapping exists
        """
        mapping = self.language_versions.get(language.lower())
        if mapping is None:
            raise UnsupportedLanguage(language)
        return mapping

    def build_request(
        self,
        language: str,
        source: str,
        stdin: str = "",
        time_limit: Optional[float] = None,
        memory_limit: Optional[int] = None,
    ) -> ExecutionRequest:
        sandbox_language, version_index = self.resolve_language(language)
        return ExecutionRequest(
            language=language.lower(),
            sandbox_language=sandbox_language,
            version_index=version_index,
            source=source,
            stdin=stdin,
            time_limit=time_limit or config.DEFAULT_TIME_LIMIT_SECONDS,
            memory_limit=memory_limit or config.DEFAULT_MEMORY_LIMIT_MB,
        )

    def _payload(self, request: ExecutionRequest) -> dict:
        return {
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "script": request.source,
            "language": request.sandbox_language,
            "versionIndex": request.version_index,
            "stdin": request.stdin,
        }

    # ==================== EXECUTION ====================

    def _remaining(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return deadline - self._clock()

    def _backoff(self, attempt: int) -> float:
        ceiling = min(self.backoff_cap, self.backoff_base * (2 ** (attempt - 1)))
        return random.uniform(0, ceiling)

    def _result(
        self,
        status: ExecutionStatus,
        started: float,
        attempts: int,
        stdout: str = "",
        stderr: str = "",
        cpu_time: Optional[float] = None,
        memory: Optional[float] = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            stdout=stdout,
            stderr=stderr,
            status=status,
            duration=self._clock() - started,
            attempts=attempts,
            cpu_time=cpu_time,
            memory=memory,
        )

    def execute(self, request: ExecutionRequest, deadline: Optional[float] = None) -> ExecutionResult:
        """Runs one program on the sandbox

        Args:
            request (ExecutionRequest): program, stdin and limits
            deadline (float): time.monotonic() instant after which the call is abandoned

        Returns:
            ExecutionResult: classified outcome; transient errors never escape

        Raises:
            UnsupportedLanguage: before any remote call
        """
        self.resolve_language(request.language)
        started = self._clock()

        if not self.client_id or not self.client_secret:
            logger.warning("Sandbox credentials are not configured, skipping dispatch")
            return self._result(
                ExecutionStatus.SANDBOX_UNAVAILABLE, started, 0,
                stderr="Sandbox credentials are not configured",
            )

        payload = self._payload(request)
        attempts = 0
        last_error = ""

        while attempts < self.max_attempts:
            remaining = self._remaining(deadline)
            if remaining is not None and remaining <= 0:
                last_error = last_error or "Deadline exceeded before dispatch"
                break

            with self.limiter.slot(timeout=remaining) as acquired:
                if not acquired:
                    last_error = "No sandbox capacity before deadline"
                    break
                attempts += 1
                try:
                    return self._attempt(request, payload, deadline, started, attempts)
                except _TransientFailure as exc:
                    last_error = str(exc)

            if attempts >= self.max_attempts:
                break

            delay = self._backoff(attempts)
            remaining = self._remaining(deadline)
            if remaining is not None and delay >= remaining:
                logger.warning("Sandbox retry would overrun the deadline, giving up: %s", last_error)
                break

            logger.warning(
                "Sandbox attempt %d/%d failed (%s), retrying in %.2fs",
                attempts, self.max_attempts, last_error, delay,
            )
            self._sleep(delay)

        logger.error("Sandbox unavailable after %d attempt(s): %s", attempts, last_error)
        return self._result(
            ExecutionStatus.SANDBOX_UNAVAILABLE, started, attempts, stderr=last_error,
        )

    def _attempt(
        self,
        request: ExecutionRequest,
        payload: dict,
        deadline: Optional[float],
        started: float,
        attempts: int,
    ) -> ExecutionResult:
        timeout = self.request_timeout
        remaining = self._remaining(deadline)
        if remaining is not None:
            timeout = min(timeout, remaining)

        try:
            response = self._client.post(self.api_url, json=payload, timeout=timeout)
        except (httpx.ConnectTimeout, httpx.PoolTimeout) as exc:
            raise _TransientFailure(f"Connection timeout: {exc}") from exc
        except httpx.TimeoutException:
            return self._result(
                ExecutionStatus.TIMEOUT, started, attempts,
                stderr="Execution exceeded the time limit",
            )
        except httpx.TransportError as exc:
            raise _TransientFailure(f"Network error: {exc}") from exc

        if _is_transient_status(response.status_code):
            raise _TransientFailure(f"Sandbox returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            if response.status_code >= 400:
                return self._rejected(response.status_code, response.text[:200], started, attempts)
            raise _TransientFailure("Malformed sandbox response") from exc

        if not isinstance(body, dict):
            raise _TransientFailure("Malformed sandbox response")

        if response.status_code >= 400:
            return self._rejected(response.status_code, body.get("error", ""), started, attempts)

        body_status = body.get("statusCode", 200)
        try:
            body_status = int(body_status)
        except (TypeError, ValueError):
            body_status = 200
        if _is_transient_status(body_status):
            raise _TransientFailure(f"Sandbox reported status {body_status}")
        if body_status >= 400:
            return self._rejected(body_status, body.get("error", ""), started, attempts)

        return self._interpret(request, body, started, attempts)

    def _rejected(self, status_code: int, detail: str, started: float, attempts: int) -> ExecutionResult:
        logger.error("Sandbox rejected request with status %d: %s", status_code, detail)
        return self._result(
            ExecutionStatus.SANDBOX_UNAVAILABLE, started, attempts,
            stderr=f"Sandbox rejected request ({status_code}): {detail}".rstrip(": "),
        )

    def _interpret(self, request: ExecutionRequest, body: dict, started: float, attempts: int) -> ExecutionResult:
        output = body.get("output") or ""
        cpu_time = _to_float(body.get("cpuTime"))
        memory = _to_float(body.get("memory"))

        def result(status: ExecutionStatus, stdout: str = "", stderr: str = "") -> ExecutionResult:
            return self._result(status, started, attempts, stdout, stderr, cpu_time, memory)

        if body.get("isCompiled") is False:
            return result(ExecutionStatus.COMPILE_ERROR, stderr=output)

        if config.SANDBOX_TIMEOUT_MARKER in output or (
            cpu_time is not None and cpu_time > request.time_limit
        ):
            return result(ExecutionStatus.TIMEOUT, stdout=output, stderr="Time limit exceeded")

        if body.get("isExecutionSuccess") is False:
            return result(ExecutionStatus.RUNTIME_ERROR, stdout=output, stderr=body.get("error") or output)

        if memory is not None and memory > request.memory_limit * 1024:
            return result(ExecutionStatus.RUNTIME_ERROR, stdout=output, stderr="Memory limit exceeded")

        return result(ExecutionStatus.SUCCESS, stdout=output)
